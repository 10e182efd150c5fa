"""OpenAI Whisper adapter — implements TranscriptionPort.

Sends the recorded audio to OpenAI's ``whisper-1`` model. After
transcription, text flows into the same temporal extractor as typed input.

This is the only module in the project that uses the OpenAI SDK.
"""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from src.ports.transcription_port import TranscriptionError

logger = logging.getLogger(__name__)


class WhisperTranscriber:
    """Whisper implementation of TranscriptionPort."""

    def __init__(
        self,
        api_key: str,
        language: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._language = language

    async def transcribe(self, audio: bytes) -> str:
        """Transcribe raw audio bytes (WAV, M4A, OGG...) using Whisper.

        Raises:
            TranscriptionError: If the Whisper API call fails.
        """
        kwargs = {"model": "whisper-1", "file": ("recording.wav", audio)}
        if self._language:
            kwargs["language"] = self._language

        try:
            response = await self._client.audio.transcriptions.create(**kwargs)
        except Exception as exc:
            logger.error("Whisper transcription failed: %s", exc)
            raise TranscriptionError(f"Whisper transcription failed: {exc}") from exc

        text = response.text.strip()
        logger.info("Transcribed %d chars from %d bytes of audio", len(text), len(audio))
        return text
