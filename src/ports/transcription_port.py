"""Transcription port — abstract interface for speech-to-text backends."""

from __future__ import annotations

from typing import Protocol


class TranscriptionError(Exception):
    """Raised when a transcription backend fails, times out, or is disabled."""


class TranscriptionPort(Protocol):
    """Abstract speech-to-text interface used by the voice flow."""

    async def transcribe(self, audio: bytes) -> str: ...
