"""Shared fixtures and in-memory fakes for outbound services."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from core.entities import ClusterSummary, RawItem
from core.errors import UpstreamUnavailableError
from ingestion.base import IngestedItem, SourceAdapter
from services.database import Database
from services.tts import SynthesizedAudio

HOUR = datetime(2026, 10, 18, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def broadcast_hour() -> datetime:
    return HOUR


@pytest_asyncio.fixture
async def db(tmp_path) -> Database:
    database = Database(str(tmp_path / "test.db"))
    await database.init_tables()
    return database


@pytest.fixture
def make_item():
    counter = {"n": 0}

    def _make(
        content: str = "The government announced a new budget for public schools today",
        *,
        external_id: Optional[str] = None,
        author: str = "newsdesk",
        verified: bool = True,
        engagement: int = 150,
        ingested_at: Optional[datetime] = None,
    ) -> RawItem:
        counter["n"] += 1
        return RawItem(
            external_id=external_id or f"item-{counter['n']}",
            author=author,
            verified=verified,
            content=content,
            timestamp=HOUR - timedelta(minutes=45),
            engagement=engagement,
            ingested_at=ingested_at or HOUR - timedelta(minutes=30),
        )

    return _make


class FakeSource(SourceAdapter):
    name = "fake"

    def __init__(self, posts: Optional[List[dict]] = None, error: Optional[Exception] = None):
        self.posts = posts or []
        self.error = error
        self.calls = 0

    async def fetch_items(self, limit=100, start=None, end=None):
        self.calls += 1
        if self.error:
            raise self.error
        return [IngestedItem.model_validate(p) for p in self.posts[:limit]]


class FakeLLM:
    def __init__(self, reply: str = "Officials confirmed the update, according to newsdesk.", error=None):
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


class FakeTTS:
    def __init__(
        self,
        fail_on: Optional[str] = None,
        duration: Optional[float] = None,
        error: Optional[Exception] = None,
    ):
        self.fail_on = fail_on
        self.error = error or UpstreamUnavailableError("TTS API error: 500 Internal Server Error")
        self.duration = duration
        self.calls: List[str] = []

    async def synthesize(self, text: str, voice: Optional[str] = None) -> SynthesizedAudio:
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise self.error
        return SynthesizedAudio(content=b"ID3" + b"\x00" * 61, voice=voice or "Idera",
                                duration_seconds=self.duration)


class FakeStorage:
    def __init__(self):
        self.objects: Dict[str, bytes] = {}

    async def upload(self, key: str, content: bytes, content_type: str = "audio/mpeg") -> str:
        self.objects[key] = content
        return f"https://audio.example.com/{key}"


def fixed_summarizer(texts: Dict[str, str]):
    async def _summarize(cluster):
        return ClusterSummary(text=texts.get(cluster.primary_category, cluster.summary))
    return _summarize


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def fake_tts():
    return FakeTTS


@pytest.fixture
def fake_storage():
    return FakeStorage()
