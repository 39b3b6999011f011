import logging
from typing import Dict, List, Mapping, Sequence

from core.categories import DEFAULT_CATEGORY, priority_of
from core.entities import Cluster, RawItem

logger = logging.getLogger(__name__)

MIN_ITEMS_TO_SPLIT = 3
CATCH_ALL_TOPIC = "General News"
CATCH_ALL_SUMMARY = "Mixed news updates"


def _unique_authors(items: Sequence[RawItem]) -> List[str]:
    return list(dict.fromkeys(item.author for item in items))


def build_clusters(
    items: Sequence[RawItem],
    categories: Mapping[str, str],
) -> List[Cluster]:
    """
    Partition valid items by primary category.

    categories: item external_id -> persisted primary category. Items with no
    entry fall into DEFAULT_CATEGORY. Fewer than three items always produce a
    single catch-all cluster.
    """
    if len(items) < MIN_ITEMS_TO_SPLIT:
        logger.info(f"[CLUSTER] {len(items)} item(s), creating single cluster")
        return [
            Cluster(
                topic=CATCH_ALL_TOPIC,
                primary_category=DEFAULT_CATEGORY,
                item_ids=[item.external_id for item in items],
                summary=CATCH_ALL_SUMMARY,
                source_accounts=_unique_authors(items),
            )
        ]

    groups: Dict[str, List[RawItem]] = {}
    for item in items:
        category = categories.get(item.external_id, DEFAULT_CATEGORY)
        groups.setdefault(category, []).append(item)

    clusters = [
        Cluster(
            topic=category,
            primary_category=category,
            item_ids=[item.external_id for item in members],
            summary=f"{len(members)} updates in {category}",
            source_accounts=_unique_authors(members),
        )
        for category, members in groups.items()
    ]

    logger.info(f"[CLUSTER] Created {len(clusters)} clusters")
    return clusters


def rank_clusters(clusters: Sequence[Cluster]) -> List[Cluster]:
    """
    Bulletin order: most items first, then category priority, then topic name.
    """
    return sorted(
        clusters,
        key=lambda c: (-c.size, priority_of(c.primary_category), c.topic),
    )
