"""
Text-to-speech client
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from core.errors import UpstreamUnavailableError
from services.retry import NO_RETRY, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

DURATION_HEADER = "X-Audio-Duration"


@dataclass(frozen=True)
class SynthesizedAudio:
    content: bytes
    voice: str
    duration_seconds: Optional[float] = None

    @property
    def size(self) -> int:
        return len(self.content)


class TTSClient:
    """
    Posts text to the TTS endpoint and returns raw MP3 bytes.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        default_voice: str = "Idera",
        speed: float = 1.0,
        timeout: float = 30.0,
        retry_policy: RetryPolicy = NO_RETRY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.default_voice = default_voice
        self.speed = speed
        self.timeout = timeout
        self.retry_policy = retry_policy
        self._transport = transport

    async def synthesize(self, text: str, voice: Optional[str] = None) -> SynthesizedAudio:
        voice = voice or self.default_voice
        logger.info(f"[AUDIO] Generating audio with voice: {voice}")

        async def _post() -> httpx.Response:
            # The outer timeout owns the deadline; httpx gets a slightly looser one
            async with httpx.AsyncClient(timeout=self.timeout + 5, transport=self._transport) as client:
                try:
                    resp = await client.post(
                        self.endpoint,
                        headers={"Authorization": f"Bearer {self.api_key}"},
                        json={"text": text, "voice": voice, "speed": self.speed, "format": "mp3"},
                    )
                except httpx.HTTPError as e:
                    raise UpstreamUnavailableError(f"TTS request failed: {e}") from e

                if resp.status_code != 200:
                    raise UpstreamUnavailableError(
                        f"TTS API error: {resp.status_code} {resp.reason_phrase}"
                    )
                return resp

        resp = await call_with_retry(
            _post,
            timeout=self.timeout,
            policy=self.retry_policy,
            retry_on=(UpstreamUnavailableError,),
            operation="tts",
        )

        if not resp.content:
            raise UpstreamUnavailableError("TTS API returned an empty body")

        duration = None
        header = resp.headers.get(DURATION_HEADER)
        if header:
            try:
                duration = float(header)
            except ValueError:
                logger.warning(f"[AUDIO] Ignoring unparseable {DURATION_HEADER}: {header!r}")

        logger.info(f"[AUDIO] Generated {len(resp.content)} bytes of audio")
        return SynthesizedAudio(content=resp.content, voice=voice, duration_seconds=duration)
