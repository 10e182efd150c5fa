"""
Quicktask — Composition root.

Wires the extractor, notifier, lifecycle, store and voice flow together
from settings. Collaborators can be injected for tests or embedding.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from src.adapters.dateparser_parser import DateparserTemporalParser
from src.adapters.local_notifier import LocalNotifier
from src.adapters.transcriber_factory import create_transcriber
from src.config import settings
from src.core.extractor import TemporalExtractor
from src.core.notification_lifecycle import NotificationLifecycle
from src.core.task_store import TaskStore
from src.core.voice_capture import VoiceCapture
from src.data.models import Task, TaskFilter
from src.ports.notification_port import NotificationPort, SchedulingError
from src.ports.transcription_port import TranscriptionPort

logger = logging.getLogger(__name__)


@dataclass
class App:
    """All long-lived components of one running task list."""

    extractor: TemporalExtractor
    lifecycle: NotificationLifecycle
    store: TaskStore
    voice: VoiceCapture


def build_app(
    notifier: NotificationPort | None = None,
    transcriber: TranscriptionPort | None = None,
) -> App:
    """Build the app; the transcriber is resolved once, here."""
    extractor = TemporalExtractor(
        DateparserTemporalParser(settings.PARSER_LANGUAGES),
        placeholder_title=settings.VOICE_TASK_PLACEHOLDER,
        languages=settings.PARSER_LANGUAGES,
    )
    lifecycle = NotificationLifecycle(notifier or LocalNotifier())
    store = TaskStore(lifecycle, reminder_title=settings.REMINDER_TITLE)
    voice = VoiceCapture(
        transcriber or create_transcriber(),
        extractor,
        store,
        timeout_seconds=settings.TRANSCRIPTION_TIMEOUT_SECONDS,
    )
    return App(extractor=extractor, lifecycle=lifecycle, store=store, voice=voice)


def now_local() -> datetime:
    """Current time in the configured timezone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def format_task(task: Task) -> str:
    mark = "x" if task.completed else " "
    line = f"[{mark}] {task.title}"
    if task.deadline is not None:
        line += f"  due {task.deadline:%Y-%m-%d %H:%M}"
    if task.reminder_at is not None:
        line += f"  remind {task.reminder_at:%Y-%m-%d %H:%M}"
    return line


async def capture_texts(app: App, texts: list[str]) -> list[Task]:
    """Store each text the same way a confirmed voice transcript is stored."""
    for text in texts:
        try:
            await app.voice.confirm(text, now_local())
        except SchedulingError as exc:
            logger.warning("Stored '%s' without a reminder: %s", text, exc)
    return app.store.filter(TaskFilter.ALL)


def main(argv: list[str] | None = None) -> None:
    texts = sys.argv[1:] if argv is None else argv
    if not texts:
        print('usage: python main.py "call mom tomorrow at 5pm" [...]', file=sys.stderr)
        sys.exit(2)

    app = build_app()
    tasks = asyncio.run(capture_texts(app, texts))
    for task in tasks:
        print(format_task(task))
