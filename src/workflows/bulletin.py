"""
Hourly bulletin pipeline: ingest -> filter -> cluster -> script -> broadcast.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from core.entities import Broadcast, PipelineOutcome, RunStatus
from core.errors import DuplicateBroadcastError
from core.scoring import DEFAULT_CONFIDENCE_THRESHOLD
from ingestion.base import SourceAdapter
from processing.clustering import build_clusters
from processing.deduplicator import ingest_new_items
from processing.prefilter import current_window_end, hour_bucket, score_and_filter
from processing.script import (
    MAX_CLUSTERS,
    Summarize,
    assemble_script,
    estimate_duration_seconds,
)
from services.database import Database

logger = logging.getLogger(__name__)


class BulletinPipeline:
    """
    One sequential run per invocation.

    Without an explicit hour, the run builds the bulletin for the hour in
    progress, labelled by its end, so items ingested by this run are in its
    window. An explicit hour is floored to its bucket.

    Any exception escaping a stage aborts the run before the broadcast insert,
    so a broadcast is either written whole or not at all. The unique hour key
    on broadcasts rejects a second run for the same hour, and an existing
    broadcast is checked before any scoring or summarizing.
    """

    def __init__(
        self,
        *,
        db: Database,
        source: Optional[SourceAdapter],
        summarize: Summarize,
        fetch_limit: int = 100,
        default_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        program_name: str = "the Hourly News Brief",
        max_clusters: int = MAX_CLUSTERS,
    ):
        self.db = db
        self.source = source
        self.summarize = summarize
        self.fetch_limit = fetch_limit
        self.default_threshold = default_threshold
        self.program_name = program_name
        self.max_clusters = max_clusters

    async def run(self, broadcast_hour: Optional[datetime] = None) -> PipelineOutcome:
        started = time.perf_counter()
        if broadcast_hour is None:
            hour = current_window_end(datetime.now(timezone.utc))
        else:
            hour = hour_bucket(broadcast_hour)
        logger.info(f"========== PIPELINE RUN {hour.isoformat()} ==========")

        ingested = 0
        if self.source is not None:
            result = await ingest_new_items(
                source=self.source,
                db=self.db,
                limit=self.fetch_limit,
            )
            ingested = result.inserted

        if await self.db.get_broadcast_for_hour(hour) is not None:
            logger.warning(f"[PIPELINE] Broadcast for {hour.isoformat()} already exists")
            raise DuplicateBroadcastError(hour)

        filtered = await score_and_filter(
            db=self.db,
            broadcast_hour=hour,
            default_threshold=self.default_threshold,
        )

        if not filtered.valid_items:
            logger.info(f"[PIPELINE] No valid items for {hour.isoformat()}, nothing to broadcast")
            return PipelineOutcome(
                status=RunStatus.NO_VALID_ITEMS,
                broadcast_hour=hour,
                ingested=ingested,
                scored=len(filtered.scores),
            )

        categories = {
            item_id: score.primary_category for item_id, score in filtered.scores.items()
        }
        clusters = build_clusters(filtered.valid_items, categories)

        script = await assemble_script(
            clusters,
            hour,
            self.summarize,
            program_name=self.program_name,
            max_clusters=self.max_clusters,
        )

        broadcast = Broadcast(
            id=None,
            broadcast_hour=hour,
            full_script=script.text,
            summary_text=script.summary_text,
            cluster_count=len(clusters),
            item_count=len(filtered.valid_items),
            word_count=script.word_count,
            estimated_duration_seconds=estimate_duration_seconds(script.word_count),
            is_published=False,
        )
        broadcast_id = await self.db.insert_broadcast(broadcast)

        # Only a committed broadcast consumes the hour's items
        await self.db.mark_items_processed(filtered.scored_ids)

        logger.info(
            f"[PIPELINE] Broadcast {broadcast_id} created for {hour.isoformat()} "
            f"({len(filtered.valid_items)} items, {len(clusters)} clusters, "
            f"{script.cluster_count} in script, "
            f"{time.perf_counter() - started:.2f}s)"
        )

        return PipelineOutcome(
            status=RunStatus.CREATED,
            broadcast_hour=hour,
            broadcast_id=broadcast_id,
            ingested=ingested,
            scored=len(filtered.scores),
            valid=len(filtered.valid_items),
            cluster_count=len(clusters),
        )
