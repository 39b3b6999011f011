"""
Ingest posts from the news scraper API
"""
import logging
from datetime import datetime
from typing import List, Optional

import httpx
from pydantic import ValidationError

from core.errors import MalformedResponseError, UpstreamUnavailableError
from core.schemas import SourceResponse
from ingestion.base import IngestedItem, SourceAdapter
from services.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class ScraperAdapter(SourceAdapter):
    name = "scraper"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        retry_policy: RetryPolicy = RetryPolicy(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy
        self._transport = transport

    async def _get(self, params: dict) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout + 5, transport=self._transport) as client:
            try:
                resp = await client.get(
                    f"{self.base_url}/api/tweets",
                    params=params,
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as e:
                raise UpstreamUnavailableError(f"Scraper request failed: {e}") from e

            if resp.status_code != 200:
                raise UpstreamUnavailableError(
                    f"Scraper API error: {resp.status_code} {resp.reason_phrase}"
                )
            return resp

    async def fetch_items(
        self,
        limit: int = 100,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[IngestedItem]:
        params = {"limit": str(limit)}
        if start and end:
            params["start"] = start.isoformat()
            params["end"] = end.isoformat()

        logger.info(f"[SCRAPER] Fetching up to {limit} items from {self.base_url}")

        resp = await call_with_retry(
            lambda: self._get(params),
            timeout=self.timeout,
            policy=self.retry_policy,
            retry_on=(UpstreamUnavailableError,),
            operation="scraper-fetch",
        )

        try:
            envelope = SourceResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise MalformedResponseError(f"Scraper returned an unexpected payload: {e}") from e

        if not envelope.success:
            raise UpstreamUnavailableError(
                f"Scraper API failed: {envelope.error or envelope.message or 'Unknown error'}"
            )

        items: List[IngestedItem] = []
        for post in envelope.posts[:limit]:
            try:
                items.append(IngestedItem.model_validate(post))
            except ValidationError as e:
                logger.warning(f"[SCRAPER] Skipping malformed post {post.get('id') or post.get('tweet_id')}: {e}")

        logger.info(f"[SCRAPER] Fetched {len(items)} items")
        return items
