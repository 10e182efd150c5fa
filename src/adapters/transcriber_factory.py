"""Transcriber factory — picks the speech-to-text backend from config.

Resolved once at startup; the voice flow never probes for a backend per call.
"""

from __future__ import annotations

import logging

from src.config import settings
from src.ports.transcription_port import TranscriptionError, TranscriptionPort

logger = logging.getLogger(__name__)


class DisabledTranscriber:
    """Stand-in used when voice capture is switched off."""

    async def transcribe(self, audio: bytes) -> str:
        raise TranscriptionError("Voice capture is disabled (STT_PROVIDER=disabled)")


def create_transcriber() -> TranscriptionPort:
    """Return the transcriber matching the STT_PROVIDER setting."""
    provider = settings.STT_PROVIDER.lower()

    if provider == "http":
        from src.adapters.http_transcriber import HttpTranscriber

        return HttpTranscriber(
            url=settings.STT_BACKEND_URL,
            api_key=settings.STT_API_KEY,
            timeout=settings.TRANSCRIPTION_TIMEOUT_SECONDS,
        )

    if provider == "whisper":
        if not settings.OPENAI_API_KEY:
            logger.warning("STT_PROVIDER=whisper but OPENAI_API_KEY is empty, voice capture disabled")
            return DisabledTranscriber()

        from src.adapters.whisper_transcriber import WhisperTranscriber

        return WhisperTranscriber(api_key=settings.OPENAI_API_KEY)

    if provider == "disabled":
        return DisabledTranscriber()

    raise ValueError(f"Unknown STT_PROVIDER: {provider!r}")
