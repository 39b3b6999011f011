import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from core.entities import FilterResult, QualityScore, RawItem
from core.scoring import DEFAULT_CONFIDENCE_THRESHOLD, score_item
from services.database import Database

logger = logging.getLogger(__name__)

WINDOW = timedelta(hours=1)


def hour_bucket(moment: datetime) -> datetime:
    """Floor a timestamp to its UTC hour."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def current_window_end(moment: datetime) -> datetime:
    """
    End of the hour bucket `moment` falls in. The window (H - 1h, H] then
    covers the rest of that hour, including items ingested later in the run.
    """
    return hour_bucket(moment) + WINDOW


async def score_and_filter(
    *,
    db: Database,
    broadcast_hour: datetime,
    default_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    threshold_override: Optional[float] = None,
) -> FilterResult:
    """
    Score every unprocessed item ingested in (H - 1h, H] and return the valid ones.

    Every score is persisted, rejects included. An item that already has a
    score from an earlier, aborted run keeps it; scores are never rewritten.
    """
    start = broadcast_hour - WINDOW
    items = await db.get_unprocessed_items(start, broadcast_hour)

    if not items:
        logger.info(f"[FILTER] No items found for window ending {broadcast_hour.isoformat()}")
        return FilterResult(valid_items=[], scores={})

    logger.info(f"[FILTER] Found {len(items)} items to score")

    thresholds = await db.get_category_thresholds()

    valid: List[RawItem] = []
    scores: Dict[str, QualityScore] = {}

    for item in items:
        score = await db.get_quality_score(item.external_id)
        if score is None:
            score = score_item(
                item,
                threshold_override,
                category_thresholds=thresholds,
                default_threshold=default_threshold,
            )
            await db.insert_quality_score(score)
        else:
            logger.debug(f"[FILTER] Reusing stored score for {item.external_id}")

        scores[item.external_id] = score

        if score.is_valid:
            valid.append(item)
        else:
            logger.debug(f"[FILTER] Rejected {item.external_id}: {score.rejection_reason or 'below threshold'}")

    logger.info(f"[FILTER] Quality scoring complete: {len(valid)}/{len(items)} valid")
    return FilterResult(valid_items=valid, scores=scores)
