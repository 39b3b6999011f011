"""Tests for processing.summarizer."""

import pytest
import pytest_asyncio

from conftest import FakeLLM
from core.entities import Cluster
from core.errors import MalformedResponseError, OperationTimeoutError, UpstreamUnavailableError
from processing.summarizer import ClusterSummarizer, build_summary_prompt


@pytest_asyncio.fixture
async def stored_cluster(db, make_item):
    items = [
        make_item("Fuel price rises again at filling stations in Lagos", author="wire"),
        make_item("Marketers blame the new fuel price on supply shortages", author="desk"),
    ]
    for item in items:
        await db.insert_item(item)
    return Cluster(
        topic="Energy",
        primary_category="Energy",
        item_ids=[i.external_id for i in items],
        summary="2 updates in Energy",
        source_accounts=["wire", "desk"],
    )


def test_prompt_lists_posts_sources_and_rules():
    cluster = Cluster(topic="Health", primary_category="Health", source_accounts=["ncdc"])
    prompt = build_summary_prompt(cluster, ["Cholera cases rise", "Clinics open late"])

    assert "about Health" in prompt
    assert "Cholera cases rise\nClinics open late" in prompt
    assert "ncdc" in prompt
    assert "Avoid speculation" in prompt


def test_prompt_is_bounded():
    cluster = Cluster(topic="Health", primary_category="Health")
    prompt = build_summary_prompt(cluster, ["x" * 10_000])
    assert len(prompt) < 5_000


@pytest.mark.asyncio
async def test_returns_generated_text(db, stored_cluster):
    llm = FakeLLM(reply="  Fuel prices rose in Lagos,\n wire and desk report. ")
    summarizer = ClusterSummarizer(llm=llm, db=db)

    summary = await summarizer(stored_cluster)

    assert summary.text == "Fuel prices rose in Lagos, wire and desk report."
    assert summary.used_fallback is False
    assert "Fuel price rises again" in llm.prompts[0]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        UpstreamUnavailableError("connection refused"),
        MalformedResponseError("no text"),
        OperationTimeoutError("ollama", 60),
    ],
)
async def test_failures_fall_back_to_placeholder(db, stored_cluster, error):
    summarizer = ClusterSummarizer(llm=FakeLLM(error=error), db=db)

    summary = await summarizer.summarize(stored_cluster)

    assert summary.text == "2 updates in Energy"
    assert summary.used_fallback is True
    assert summary.error == str(error)


@pytest.mark.asyncio
async def test_unexpected_errors_propagate(db, stored_cluster):
    summarizer = ClusterSummarizer(llm=FakeLLM(error=RuntimeError("bug")), db=db)

    with pytest.raises(RuntimeError):
        await summarizer.summarize(stored_cluster)


@pytest.mark.asyncio
async def test_cluster_without_stored_content_uses_placeholder(db):
    llm = FakeLLM()
    cluster = Cluster(topic="Social", primary_category="Social", item_ids=["missing"],
                      summary="1 updates in Social")

    summary = await ClusterSummarizer(llm=llm, db=db).summarize(cluster)

    assert summary.used_fallback is True
    assert summary.text == "1 updates in Social"
    assert llm.prompts == []
