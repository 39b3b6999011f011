"""
S3-compatible object storage for broadcast audio.
"""
import asyncio
import logging
import uuid
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.errors import UpstreamUnavailableError
from services.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


def audio_key(broadcast_id: int, prefix: str = "broadcasts/") -> str:
    """Fresh object key for a broadcast's audio; never reused across attempts."""
    if prefix and not prefix.endswith("/"):
        prefix += "/"
    return f"{prefix}broadcast-{broadcast_id}-{uuid.uuid4().hex}.mp3"


class ObjectStorage:
    """A client for uploading audio to an S3-compatible bucket (R2, Spaces, S3)."""

    def __init__(
        self,
        bucket: str,
        public_domain: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = "auto",
        timeout: float = 60.0,
        retry_policy: RetryPolicy = RetryPolicy(),
        client=None,
    ):
        self.bucket = bucket
        self.public_domain = public_domain.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy

        if client is None:
            session = boto3.session.Session()
            client = session.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
            )
        self.client = client

    def public_url(self, key: str) -> str:
        domain = self.public_domain
        if "://" not in domain:
            domain = f"https://{domain}"
        return f"{domain}/{key}"

    def _put(self, key: str, content: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise UpstreamUnavailableError(f"Upload of {key} failed: {e}") from e

    async def upload(self, key: str, content: bytes, content_type: str = "audio/mpeg") -> str:
        """
        Upload raw bytes under `key` and return the public URL.
        """
        logger.info(f"[STORAGE] Uploading {key} ({len(content)} bytes)")

        await call_with_retry(
            lambda: asyncio.to_thread(self._put, key, content, content_type),
            timeout=self.timeout,
            policy=self.retry_policy,
            retry_on=(UpstreamUnavailableError,),
            operation="storage-upload",
        )

        url = self.public_url(key)
        logger.info(f"[STORAGE] Upload complete: {url}")
        return url
