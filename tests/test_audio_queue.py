"""Tests for workflows.audio_queue."""

from datetime import timedelta

import pytest

from conftest import FakeStorage, FakeTTS
from core.entities import AudioArtifact, Broadcast
from core.errors import OperationTimeoutError
from workflows.audio_queue import AudioQueueProcessor


async def _broadcast(db, hour, script, word_count=300):
    return await db.insert_broadcast(
        Broadcast(
            id=None,
            broadcast_hour=hour,
            full_script=script,
            summary_text=script.split("\n")[0],
            cluster_count=1,
            item_count=3,
            word_count=word_count,
            estimated_duration_seconds=word_count * 60 // 150,
        )
    )


@pytest.mark.asyncio
async def test_failure_on_one_broadcast_does_not_stop_the_batch(db, broadcast_hour):
    ids = [
        await _broadcast(db, broadcast_hour + timedelta(hours=i), f"Bulletin number {i}")
        for i in (1, 2, 3)
    ]
    tts = FakeTTS(fail_on="Bulletin number 2")
    storage = FakeStorage()

    result = await AudioQueueProcessor(db=db, tts=tts, storage=storage).run()

    assert result.published == [ids[0], ids[2]]
    assert list(result.failed) == [ids[1]]
    assert "UpstreamUnavailableError" in result.failed[ids[1]]
    assert (await db.get_broadcast(ids[0])).is_published is True
    assert (await db.get_broadcast(ids[1])).is_published is False
    assert (await db.get_broadcast(ids[2])).is_published is True
    assert await db.get_audio_artifact(ids[1]) is None
    assert len(storage.objects) == 2


@pytest.mark.asyncio
async def test_failed_broadcast_is_retried_on_next_pass(db, broadcast_hour):
    broadcast_id = await _broadcast(db, broadcast_hour, "Evening bulletin")

    first = await AudioQueueProcessor(db=db, tts=FakeTTS(fail_on="Evening"), storage=FakeStorage()).run()
    second = await AudioQueueProcessor(db=db, tts=FakeTTS(), storage=FakeStorage()).run()

    assert first.failed and not first.published
    assert second.published == [broadcast_id]


@pytest.mark.asyncio
async def test_oldest_first_and_batch_limit(db, broadcast_hour):
    late = await _broadcast(db, broadcast_hour + timedelta(hours=5), "late")
    early = await _broadcast(db, broadcast_hour, "early")
    middle = await _broadcast(db, broadcast_hour + timedelta(hours=2), "middle")
    tts = FakeTTS()

    result = await AudioQueueProcessor(db=db, tts=tts, storage=FakeStorage(), batch_size=2).run()

    assert result.published == [early, middle]
    assert tts.calls == ["early", "middle"]
    assert (await db.get_broadcast(late)).is_published is False


@pytest.mark.asyncio
async def test_artifact_fields_and_estimated_duration(db, broadcast_hour):
    broadcast_id = await _broadcast(db, broadcast_hour, "Morning bulletin", word_count=151)
    storage = FakeStorage()

    await AudioQueueProcessor(db=db, tts=FakeTTS(), storage=storage, voice="Femi").run()

    artifact = await db.get_audio_artifact(broadcast_id)
    (key,) = storage.objects
    assert key.startswith(f"broadcasts/broadcast-{broadcast_id}-")
    assert key.endswith(".mp3")
    assert artifact.audio_url == f"https://audio.example.com/{key}"
    assert artifact.duration_seconds == 61
    assert artifact.file_size_bytes == 64
    assert artifact.voice_used == "Femi"


@pytest.mark.asyncio
async def test_reported_duration_wins_over_estimate(db, broadcast_hour):
    broadcast_id = await _broadcast(db, broadcast_hour, "Noon bulletin", word_count=150)

    await AudioQueueProcessor(db=db, tts=FakeTTS(duration=42.3), storage=FakeStorage()).run()

    assert (await db.get_audio_artifact(broadcast_id)).duration_seconds == 43


@pytest.mark.asyncio
async def test_keys_are_fresh_per_attempt(db, broadcast_hour):
    first = await _broadcast(db, broadcast_hour, "one")
    second = await _broadcast(db, broadcast_hour + timedelta(hours=1), "two")
    storage = FakeStorage()

    await AudioQueueProcessor(db=db, tts=FakeTTS(), storage=storage).run()

    assert len(set(storage.objects)) == 2
    assert {(await db.get_audio_artifact(i)).audio_url for i in (first, second)} == {
        f"https://audio.example.com/{k}" for k in storage.objects
    }


@pytest.mark.asyncio
async def test_existing_artifact_is_published_without_new_audio(db, broadcast_hour):
    broadcast_id = await _broadcast(db, broadcast_hour, "Recovered bulletin")
    await db.insert_audio_artifact(
        AudioArtifact(
            broadcast_id=broadcast_id,
            audio_url="https://audio.example.com/old.mp3",
            duration_seconds=120,
            file_size_bytes=1000,
            voice_used="Idera",
        )
    )
    tts = FakeTTS()

    result = await AudioQueueProcessor(db=db, tts=tts, storage=FakeStorage()).run()

    assert result.published == [broadcast_id]
    assert tts.calls == []
    assert (await db.get_broadcast(broadcast_id)).is_published is True


@pytest.mark.asyncio
async def test_empty_queue(db):
    result = await AudioQueueProcessor(db=db, tts=FakeTTS(), storage=FakeStorage()).run()
    assert result.attempted == 0


@pytest.mark.asyncio
async def test_tts_timeout_is_isolated_to_its_broadcast(db, broadcast_hour):
    ids = [
        await _broadcast(db, broadcast_hour + timedelta(hours=i), f"Slot {i} bulletin")
        for i in (1, 2, 3)
    ]
    tts = FakeTTS(fail_on="Slot 1", error=OperationTimeoutError("tts", 30))
    storage = FakeStorage()

    result = await AudioQueueProcessor(db=db, tts=tts, storage=storage).run()

    assert result.published == [ids[1], ids[2]]
    assert "OperationTimeoutError" in result.failed[ids[0]]
    assert (await db.get_broadcast(ids[0])).is_published is False
    assert await db.get_audio_artifact(ids[0]) is None
    assert len(tts.calls) == 3
