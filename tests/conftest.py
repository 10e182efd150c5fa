"""Shared test fixtures and configuration.

Sets up environment variables before any src imports, and provides a
recording notifier plus ready-wired lifecycle/store fixtures.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("STT_PROVIDER", "disabled")
os.environ.setdefault("PARSER_LANGUAGES", "en")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime, timezone

import pytest


class FakeNotifier:
    """Notifier double that records every call in order."""

    def __init__(self):
        self.calls = []
        self.live = set()
        self.fail_schedule = False
        self.fail_cancel = False
        self._counter = 0

    async def schedule(self, trigger_at, payload):
        self.calls.append(("schedule", trigger_at, payload))
        if self.fail_schedule:
            raise RuntimeError("notifier rejected schedule")
        self._counter += 1
        handle = f"h{self._counter}"
        self.live.add(handle)
        return handle

    async def cancel(self, handle):
        self.calls.append(("cancel", handle))
        if self.fail_cancel:
            raise RuntimeError("notifier rejected cancel")
        self.live.discard(handle)

    def ops(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def now():
    return datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def lifecycle(notifier):
    from src.core.notification_lifecycle import NotificationLifecycle
    return NotificationLifecycle(notifier)


@pytest.fixture
def store(lifecycle):
    from src.core.task_store import TaskStore
    return TaskStore(lifecycle, reminder_title="Task reminder")
