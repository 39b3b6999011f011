"""
Base classes for Ingestion
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class IngestedItem(BaseModel):
    """
    A post as returned by the content source.
    Accepts both the current field names and the legacy tweet_* ones.
    """
    id: str = Field(..., validation_alias=AliasChoices("id", "tweet_id"))
    author: str
    verified: bool = Field(False, validation_alias=AliasChoices("verified", "author_verified"))
    content: str
    timestamp: datetime
    engagement: int = Field(0, validation_alias=AliasChoices("engagement", "retweet_count"))

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return str(value) if isinstance(value, int) else value

    @field_validator("verified", "engagement", mode="before")
    @classmethod
    def _none_as_default(cls, value, info):
        if value is None:
            return False if info.field_name == "verified" else 0
        return value


class SourceAdapter(ABC):
    """
    Base interface for content sources.
    """

    name: str = "source"

    @abstractmethod
    async def fetch_items(
        self,
        limit: int = 100,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[IngestedItem]:
        """
        Fetch up to `limit` recent items, optionally bounded to [start, end].
        Raises UpstreamUnavailableError or OperationTimeoutError on failure.
        """
        raise NotImplementedError
