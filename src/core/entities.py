from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class RawItem:
    """
    A social-media post as stored by ingestion.
    """
    external_id: str
    author: str
    verified: bool
    content: str
    timestamp: datetime
    engagement: int
    ingested_at: datetime
    processed: bool = False


@dataclass(frozen=True)
class QualityScore:
    """
    Result of scoring one item. Created once per item, never updated.
    """
    item_id: str
    is_valid: bool
    confidence: float
    primary_category: str
    secondary_categories: Tuple[str, ...] = ()
    rejection_reason: Optional[str] = None


@dataclass
class Cluster:
    """
    Valid items of one run that share a primary category.
    """
    topic: str
    primary_category: str
    item_ids: List[str] = field(default_factory=list)
    summary: str = ""
    source_accounts: List[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.item_ids)


@dataclass(frozen=True)
class Broadcast:
    """
    One bulletin for one hour bucket.
    """
    id: Optional[int]
    broadcast_hour: datetime
    full_script: str
    summary_text: str
    cluster_count: int
    item_count: int
    word_count: int
    estimated_duration_seconds: int
    is_published: bool = False


@dataclass(frozen=True)
class AudioArtifact:
    """
    Uploaded audio for a broadcast.
    """
    broadcast_id: int
    audio_url: str
    duration_seconds: int
    file_size_bytes: int
    voice_used: str


@dataclass(frozen=True)
class IngestResult:
    fetched: int
    inserted: int
    skipped: int
    failed: int


@dataclass(frozen=True)
class FilterResult:
    """
    Output of the filter stage for one hour window.
    """
    valid_items: List[RawItem]
    scores: Dict[str, QualityScore]

    @property
    def scored_ids(self) -> List[str]:
        return list(self.scores)


@dataclass(frozen=True)
class ClusterSummary:
    text: str
    used_fallback: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class BulletinScript:
    text: str
    summary_text: str
    word_count: int
    cluster_count: int
    fallback_count: int = 0


class RunStatus(str, Enum):
    CREATED = "created"
    NO_VALID_ITEMS = "no_valid_items"


@dataclass(frozen=True)
class PipelineOutcome:
    status: RunStatus
    broadcast_hour: datetime
    broadcast_id: Optional[int] = None
    ingested: int = 0
    scored: int = 0
    valid: int = 0
    cluster_count: int = 0


@dataclass
class AudioBatchResult:
    """
    Outcome of one audio queue pass. Failures are keyed by broadcast id.
    """
    published: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return len(self.published) + len(self.failed)
