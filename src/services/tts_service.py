"""TTS Service - HTTP client for ElevenLabs speech synthesis."""

import logging
import os
from typing import Optional

import httpx

from utils.retry import APIRateLimitError, NetworkError, TemporaryServiceError, retry_api_call

logger = logging.getLogger(__name__)

ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"
DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
# ElevenLabs rejects requests above 10,000 characters; keep a margin
DEFAULT_MAX_CHARS = 9500


class TTSServiceError(Exception):
    """Error from TTS service."""

    pass


class TTSService:
    """HTTP client for text-to-speech generation via the ElevenLabs API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: str = DEFAULT_VOICE_ID,
        model_id: str = DEFAULT_MODEL_ID,
        stability: float = 0.75,
        similarity_boost: float = 0.75,
        style: float = 0.5,
        max_chars: int = DEFAULT_MAX_CHARS,
        timeout: float = 300.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize TTS service.

        Args:
            api_key: ElevenLabs API key (defaults to ELEVENLABS_API_KEY)
            voice_id: ElevenLabs voice to narrate with
            model_id: ElevenLabs model id
            stability: Voice stability (0.0-1.0)
            similarity_boost: Voice similarity boost (0.0-1.0)
            style: Style exaggeration (0.0-1.0)
            max_chars: Largest text accepted by a single request
            timeout: Request timeout in seconds (long text can take minutes)
            client: Optional pre-built httpx client
        """
        self.api_key = api_key if api_key is not None else os.getenv("ELEVENLABS_API_KEY", "")
        self.voice_id = voice_id
        self.model_id = model_id
        self.stability = stability
        self.similarity_boost = similarity_boost
        self.style = style
        self.max_chars = max_chars
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def detect_audio_format(audio_bytes: bytes) -> str:
        """Detect audio format from magic bytes."""
        if len(audio_bytes) >= 12 and audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE":
            return "wav"
        if audio_bytes[:3] == b"ID3" or (
            len(audio_bytes) >= 2
            and audio_bytes[0] == 0xFF
            and (audio_bytes[1] & 0xE0) == 0xE0
        ):
            return "mp3"
        if audio_bytes[:4] == b"OggS":
            return "ogg"
        return "bin"

    @staticmethod
    def file_extension_for_audio_format(audio_format: str) -> str:
        """Map internal audio format to file extension."""
        return {
            "wav": ".wav",
            "mp3": ".mp3",
            "ogg": ".ogg",
        }.get(audio_format, ".mp3")

    def is_configured(self) -> bool:
        """Check if an API key is available."""
        return bool(self.api_key)

    @retry_api_call(max_retries=3, base_delay=2.0)
    async def synthesize(self, text: str) -> bytes:
        """Generate speech audio for text.

        The caller is responsible for chunking: text above max_chars is
        rejected, never truncated.

        Args:
            text: Text to convert to speech

        Returns:
            Audio bytes (MPEG audio)

        Raises:
            TTSServiceError: If the text is empty or too long, or generation fails
            APIRateLimitError: If still rate limited after retries
            NetworkError: If the API stays unreachable after retries
        """
        if not self.api_key:
            raise TTSServiceError("ElevenLabs API key not configured")
        if not text.strip():
            raise TTSServiceError("Cannot synthesize empty text")
        if len(text) > self.max_chars:
            raise TTSServiceError(
                f"Text is {len(text)} characters, above the {self.max_chars} character limit"
            )

        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": self.stability,
                "similarity_boost": self.similarity_boost,
                "style": self.style,
                "use_speaker_boost": True,
            },
        }
        headers = {
            "xi-api-key": self.api_key,
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
        }

        logger.info(f"Generating TTS for {len(text)} characters (voice={self.voice_id})")

        try:
            response = await self.client.post(
                f"{ELEVENLABS_API_BASE}/text-to-speech/{self.voice_id}/stream",
                json=payload,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"ElevenLabs request timed out: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"ElevenLabs connection error: {e}") from e

        if response.status_code != 200:
            self._raise_for_status(response)

        audio_bytes = response.content
        if not audio_bytes:
            raise TTSServiceError("ElevenLabs returned empty audio")

        logger.info(f"TTS generation complete: {len(audio_bytes)} bytes")
        return audio_bytes

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Translate an ElevenLabs error response into an exception."""
        status = response.status_code
        detail = response.text[:200]

        if status == 401:
            raise TTSServiceError("ElevenLabs API key is invalid or expired")
        if status == 402:
            raise TTSServiceError("ElevenLabs quota exhausted; check your subscription")
        if status == 429:
            logger.warning("ElevenLabs rate limit exceeded")
            raise APIRateLimitError("ElevenLabs rate limit exceeded")
        if status == 400:
            raise TTSServiceError(f"ElevenLabs rejected the request: {detail}")
        if status >= 500:
            raise TemporaryServiceError(f"ElevenLabs server error {status}")
        raise TTSServiceError(f"ElevenLabs returned HTTP {status}: {detail}")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
