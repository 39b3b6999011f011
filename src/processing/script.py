"""
Stitches per-cluster summaries into the spoken bulletin.
"""
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Sequence

from core.entities import BulletinScript, Cluster, ClusterSummary
from processing.clustering import rank_clusters

logger = logging.getLogger(__name__)

MAX_CLUSTERS = 5
WORDS_PER_MINUTE = 150

Summarize = Callable[[Cluster], Awaitable[ClusterSummary]]


def preamble(program_name: str, broadcast_hour: datetime) -> str:
    stamp = broadcast_hour.strftime("%B %d, %Y, %H:%M UTC")
    return f"Good day. This is {program_name} for {stamp}."


def sign_off(program_name: str) -> str:
    return (
        "For more updates, visit our website or follow us on social media.\n\n"
        f"This has been {program_name}. Thank you for listening."
    )


def count_words(text: str) -> int:
    return len(text.split())


def estimate_duration_seconds(word_count: int, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """Whole seconds, rounded up."""
    return -(-word_count * 60 // words_per_minute)


async def assemble_script(
    clusters: Sequence[Cluster],
    broadcast_hour: datetime,
    summarize: Summarize,
    *,
    program_name: str = "the Hourly News Brief",
    max_clusters: int = MAX_CLUSTERS,
) -> BulletinScript:
    """
    Build the bulletin: preamble, numbered summaries of the top clusters, sign-off.

    Clusters are ranked by rank_clusters() before the top `max_clusters` are taken.
    """
    logger.info("[SCRIPT] Generating broadcast script")

    selected = rank_clusters(clusters)[:max_clusters]

    sections: List[str] = []
    fallbacks = 0
    for cluster in selected:
        summary = await summarize(cluster)
        if summary.used_fallback:
            fallbacks += 1
        sections.append(summary.text)

    numbered = [f"{i}. {text}" for i, text in enumerate(sections, start=1)]

    script = "\n\n".join(
        [preamble(program_name, broadcast_hour), *numbered, sign_off(program_name)]
    )
    word_count = count_words(script)

    logger.info(f"[SCRIPT] Generated script ({word_count} words, {fallbacks} placeholder summaries)")

    return BulletinScript(
        text=script,
        summary_text=numbered[0] if numbered else "",
        word_count=word_count,
        cluster_count=len(selected),
        fallback_count=fallbacks,
    )
