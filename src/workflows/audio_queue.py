"""
Turns unpublished broadcasts into uploaded audio.
"""
import logging
import math
from typing import Optional, Protocol

from core.entities import AudioArtifact, AudioBatchResult, Broadcast
from processing.script import WORDS_PER_MINUTE, estimate_duration_seconds
from services.database import Database
from services.storage import audio_key
from services.tts import SynthesizedAudio

logger = logging.getLogger(__name__)


class Synthesizer(Protocol):
    async def synthesize(self, text: str, voice: Optional[str] = None) -> SynthesizedAudio:
        ...


class Uploader(Protocol):
    async def upload(self, key: str, content: bytes, content_type: str = "audio/mpeg") -> str:
        ...


class AudioQueueProcessor:
    """
    Processes up to `batch_size` unpublished broadcasts, oldest hour first.

    Each broadcast is handled on its own: a failure is logged and recorded,
    the broadcast stays unpublished for the next invocation, and the batch
    moves on. Nothing is retried within a pass.
    """

    def __init__(
        self,
        *,
        db: Database,
        tts: Synthesizer,
        storage: Uploader,
        voice: str = "Idera",
        batch_size: int = 10,
        key_prefix: str = "broadcasts/",
    ):
        self.db = db
        self.tts = tts
        self.storage = storage
        self.voice = voice
        self.batch_size = batch_size
        self.key_prefix = key_prefix

    async def run(self) -> AudioBatchResult:
        logger.info("========== AUDIO QUEUE PROCESSOR ==========")
        result = AudioBatchResult()

        # A failed batch fetch is fatal to the pass
        broadcasts = await self.db.get_unpublished_broadcasts(limit=self.batch_size)

        if not broadcasts:
            logger.info("[QUEUE] No unpublished broadcasts found")
            return result

        logger.info(f"[QUEUE] Found {len(broadcasts)} broadcasts to process")

        for broadcast in broadcasts:
            try:
                await self.process_broadcast(broadcast)
            except Exception as e:
                logger.exception(f"[QUEUE] Error processing broadcast {broadcast.id}: {e}")
                result.failed[broadcast.id] = f"{type(e).__name__}: {e}"
                continue

            result.published.append(broadcast.id)
            logger.info(f"[QUEUE] Broadcast {broadcast.id} published")

        logger.info(
            f"[QUEUE] Processing complete: {len(result.published)} published, "
            f"{len(result.failed)} failed"
        )
        return result

    async def process_broadcast(self, broadcast: Broadcast) -> AudioArtifact:
        existing = await self.db.get_audio_artifact(broadcast.id)
        if existing is not None:
            # An earlier pass stored the artifact but never flipped the flag
            logger.info(f"[QUEUE] Broadcast {broadcast.id} already has audio, publishing")
            await self.db.mark_broadcast_published(broadcast.id)
            return existing

        logger.info(f"[QUEUE] Processing broadcast {broadcast.id}")

        audio = await self.tts.synthesize(broadcast.full_script, voice=self.voice)

        key = audio_key(broadcast.id, self.key_prefix)
        url = await self.storage.upload(key, audio.content, "audio/mpeg")

        if audio.duration_seconds is not None:
            duration = math.ceil(audio.duration_seconds)
        else:
            duration = estimate_duration_seconds(broadcast.word_count, WORDS_PER_MINUTE)

        artifact = AudioArtifact(
            broadcast_id=broadcast.id,
            audio_url=url,
            duration_seconds=duration,
            file_size_bytes=audio.size,
            voice_used=audio.voice,
        )
        await self.db.insert_audio_artifact(artifact)
        await self.db.mark_broadcast_published(broadcast.id)
        return artifact
