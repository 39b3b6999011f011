import logging
from typing import List, Protocol

from core.entities import Cluster, ClusterSummary
from core.errors import UpstreamUnavailableError, OperationTimeoutError
from services.database import Database

logger = logging.getLogger(__name__)

MAX_PROMPT_CONTENT_CHARS = 4000


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str:
        ...


def build_summary_prompt(cluster: Cluster, contents: List[str]) -> str:
    combined = "\n".join(contents)
    if len(combined) > MAX_PROMPT_CONTENT_CHARS:
        combined = combined[:MAX_PROMPT_CONTENT_CHARS]

    sources = ", ".join(cluster.source_accounts) or "unknown"

    return f"""You are a news summarizer. Summarize these posts about {cluster.primary_category} into 1-2 clear, factual sentences suitable for a news broadcast.

Posts:
{combined}

Accounts: {sources}

Rules:
- Be objective and factual
- Include key details (what, who, where, when)
- Avoid speculation
- Maximum 2 sentences
- Attribute the information to its sources

Summary:"""


class ClusterSummarizer:
    """
    Condenses a cluster's posts into a short broadcast summary.

    When the generator is unreachable, times out, or returns nothing usable,
    the cluster's placeholder summary is used and the result is flagged.
    """

    def __init__(self, *, llm: TextGenerator, db: Database):
        self.llm = llm
        self.db = db

    async def __call__(self, cluster: Cluster) -> ClusterSummary:
        return await self.summarize(cluster)

    async def summarize(self, cluster: Cluster) -> ClusterSummary:
        contents = await self.db.get_item_contents(cluster.item_ids)
        if not contents:
            logger.warning(f"[SUMMARY] No stored content for cluster {cluster.topic}, using placeholder")
            return ClusterSummary(text=cluster.summary, used_fallback=True, error="no content")

        prompt = build_summary_prompt(cluster, contents)

        try:
            text = await self.llm.generate(prompt)
        except (UpstreamUnavailableError, OperationTimeoutError) as e:
            logger.warning(f"[SUMMARY] Falling back to placeholder for {cluster.topic}: {e}")
            return ClusterSummary(text=cluster.summary, used_fallback=True, error=str(e))

        return ClusterSummary(text=" ".join(text.split()))
