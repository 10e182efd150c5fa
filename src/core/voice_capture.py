"""
Quicktask — Voice Capture.

Voice is the fastest capture method: speaking is faster than typing.
The flow has two steps so the user can correct the transcript:

1. ``transcribe`` turns recorded audio into text (bounded by a timeout).
2. ``confirm`` runs the (possibly edited) text through the temporal
   extractor and stores a template-mode task.

A failed transcription never touches existing tasks.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from src.core.task_store import TaskDraft
from src.data.models import Category, EntryMode
from src.ports.transcription_port import TranscriptionError

if TYPE_CHECKING:
    from src.core.extractor import ExtractedTask, TemporalExtractor
    from src.core.task_store import TaskStore
    from src.data.models import Task
    from src.ports.transcription_port import TranscriptionPort

logger = logging.getLogger(__name__)


class VoiceCapture:
    """Speech-to-task flow: transcribe, preview, confirm."""

    def __init__(
        self,
        transcriber: TranscriptionPort,
        extractor: TemporalExtractor,
        store: TaskStore,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._transcriber = transcriber
        self._extractor = extractor
        self._store = store
        self._timeout = timeout_seconds

    async def transcribe(self, audio: bytes) -> str:
        """Return the transcript of *audio*.

        Raises:
            TranscriptionError: Backend failure, timeout, or empty transcript.
        """
        if not audio:
            raise TranscriptionError("No audio recorded")

        try:
            text = await asyncio.wait_for(self._transcriber.transcribe(audio), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Transcription timed out after %.1fs", self._timeout)
            raise TranscriptionError(f"Transcription timed out after {self._timeout:g}s") from exc
        except TranscriptionError:
            raise
        except Exception as exc:
            logger.error("Transcription failed: %s", exc)
            raise TranscriptionError(f"Transcription failed: {exc}") from exc

        text = (text or "").strip()
        if not text:
            raise TranscriptionError("Transcription returned no text")
        return text

    def preview(self, text: str, now: datetime) -> ExtractedTask:
        """Show what ``confirm`` would store for *text*, without storing it."""
        return self._extractor.extract(text, now)

    async def confirm(self, text: str, now: datetime) -> Task:
        """Store the confirmed transcript as a template-mode task."""
        extracted = self._extractor.extract(text, now)
        draft = TaskDraft(
            title=extracted.title,
            entry_mode=EntryMode.TEMPLATE,
            category=Category.WORK,
            deadline=extracted.deadline,
            reminder_at=extracted.reminder,
        )
        return await self._store.create(draft, now)

    async def capture(self, audio: bytes, now: datetime) -> Task:
        """Transcribe and confirm in one go, skipping the review step."""
        text = await self.transcribe(audio)
        logger.info("Voice input: %s", text[:80])
        return await self.confirm(text, now)
