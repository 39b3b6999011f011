"""
Module to score every ingested item
"""
import re
from typing import List, Mapping, Optional

from core.categories import UNKNOWN_CATEGORY, categorize
from core.entities import QualityScore, RawItem

DEFAULT_CONFIDENCE_THRESHOLD = 0.6

MIN_VISIBLE_LENGTH = 15
MAX_EMOJIS = 5
MAX_HASHTAGS = 5
HIGH_ENGAGEMENT = 100

EMOJI_PENALTY = 0.3
HASHTAG_PENALTY = 0.2
NO_ENGAGEMENT_PENALTY = 0.2
ENGAGEMENT_BONUS = 0.2
VERIFIED_BONUS = 0.3

TOO_SHORT = "Too short"
TOO_MANY_EMOJIS = "Too many emojis"
TOO_MANY_HASHTAGS = "Too many hashtags"

_MARKUP_RE = re.compile(r"[#@]")
_EMOJI_RE = re.compile("[\U0001F300-\U0001F9FF]")


def visible_text(content: str) -> str:
    """Content with hashtag and mention markers removed."""
    return _MARKUP_RE.sub("", content).strip()


def count_emojis(content: str) -> int:
    return len(_EMOJI_RE.findall(content))


def count_hashtags(content: str) -> int:
    return content.count("#")


def score_item(
    item: RawItem,
    threshold: Optional[float] = None,
    *,
    category_thresholds: Optional[Mapping[str, float]] = None,
    default_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> QualityScore:
    """
    Scores and categorizes a single item. Pure: no I/O.

    The validity threshold is, in order: the explicit `threshold`, the entry
    for the item's primary category in `category_thresholds`, or
    `default_threshold`.
    """
    if len(visible_text(item.content)) < MIN_VISIBLE_LENGTH:
        return QualityScore(
            item_id=item.external_id,
            is_valid=False,
            confidence=0.0,
            primary_category=UNKNOWN_CATEGORY,
            secondary_categories=(),
            rejection_reason=TOO_SHORT,
        )

    reasons: List[str] = []
    confidence = 1.0

    emojis = count_emojis(item.content)
    hashtags = count_hashtags(item.content)

    if emojis > MAX_EMOJIS:
        reasons.append(TOO_MANY_EMOJIS)
        confidence -= EMOJI_PENALTY

    if hashtags > MAX_HASHTAGS:
        reasons.append(TOO_MANY_HASHTAGS)
        confidence -= HASHTAG_PENALTY

    if item.engagement == 0 and not item.verified:
        confidence -= NO_ENGAGEMENT_PENALTY
    elif item.engagement > HIGH_ENGAGEMENT:
        confidence += ENGAGEMENT_BONUS

    if item.verified:
        confidence += VERIFIED_BONUS

    confidence = max(0.0, min(1.0, confidence))

    primary, secondaries = categorize(item.content)

    if threshold is None:
        threshold = (category_thresholds or {}).get(primary, default_threshold)

    is_valid = (
        confidence >= threshold
        and emojis <= MAX_EMOJIS
        and hashtags <= MAX_HASHTAGS
        and not reasons
    )

    return QualityScore(
        item_id=item.external_id,
        is_valid=is_valid,
        confidence=round(confidence, 4),
        primary_category=primary,
        secondary_categories=tuple(secondaries),
        rejection_reason="; ".join(reasons) if reasons else None,
    )
