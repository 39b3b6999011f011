import logging
from datetime import datetime, timezone
from typing import Optional

from core.entities import IngestResult, RawItem
from core.errors import BulletinError, PersistenceError
from ingestion.base import IngestedItem, SourceAdapter
from services.database import Database

logger = logging.getLogger(__name__)


def to_raw_item(item: IngestedItem, ingested_at: datetime) -> RawItem:
    return RawItem(
        external_id=item.id,
        author=item.author,
        verified=item.verified,
        content=item.content,
        timestamp=item.timestamp,
        engagement=item.engagement,
        ingested_at=ingested_at,
        processed=False,
    )


async def ingest_new_items(
    *,
    source: SourceAdapter,
    db: Database,
    limit: int = 100,
    now: Optional[datetime] = None,
) -> IngestResult:
    """
    Fetch a page from the source and store only unseen external ids.

    Best-effort: a source failure is logged and yields an empty result, and a
    failure on one item does not stop the rest. The lookup/insert pair is not
    atomic; the unique key on external_id settles races.
    """
    try:
        fetched = await source.fetch_items(limit=limit)
    except BulletinError as e:
        logger.warning(f"[INGEST] Source {source.name} unavailable, continuing with stored items: {e}")
        return IngestResult(fetched=0, inserted=0, skipped=0, failed=0)

    if not fetched:
        logger.info("[INGEST] No items to ingest")
        return IngestResult(fetched=0, inserted=0, skipped=0, failed=0)

    ingested_at = now or datetime.now(timezone.utc)
    inserted = skipped = failed = 0
    seen = set()

    for item in fetched:
        if item.id in seen:
            skipped += 1
            continue
        seen.add(item.id)

        try:
            stored = await db.get_item(item.id)
            if stored is not None:
                state = "processed" if stored.processed else "pending"
                logger.debug(f"[INGEST] {item.id} already stored ({state}), skipping")
                skipped += 1
                continue

            if await db.insert_item(to_raw_item(item, ingested_at)):
                inserted += 1
            else:
                logger.debug(f"[INGEST] {item.id} inserted concurrently, skipping")
                skipped += 1
        except PersistenceError as e:
            logger.error(f"[INGEST] Failed to store item {item.id}: {e}")
            failed += 1

    logger.info(f"[INGEST] Ingested {inserted}/{len(fetched)} new items ({skipped} duplicates, {failed} failed)")
    return IngestResult(fetched=len(fetched), inserted=inserted, skipped=skipped, failed=failed)
