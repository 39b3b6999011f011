"""
Error taxonomy shared by every pipeline stage.

A rejected item is not an error: it is a QualityScore with is_valid=False.
"""


class BulletinError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(BulletinError):
    """Required settings or credentials are missing."""


class UpstreamUnavailableError(BulletinError):
    """An external service could not be reached or answered with a failure."""


class MalformedResponseError(UpstreamUnavailableError):
    """An external service answered, but not in the expected shape."""


class OperationTimeoutError(BulletinError, TimeoutError):
    """A single outbound call exceeded its time budget."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(f"{operation} timed out after {timeout}s")
        self.operation = operation
        self.timeout = timeout


class PersistenceError(BulletinError):
    """A store read or write failed."""


class DuplicateBroadcastError(PersistenceError):
    """A broadcast already exists for the requested hour."""

    def __init__(self, broadcast_hour):
        super().__init__(f"Broadcast already exists for hour {broadcast_hour}")
        self.broadcast_hour = broadcast_hour
