"""Notification port — abstract interface for scheduling local reminders.

Core modules depend on this protocol, never on a specific notification
provider.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from src.data.models import NotificationPayload, Task


class SchedulingError(Exception):
    """Raised when the notifier rejects a schedule or cancel request.

    ``stage`` is "schedule" or "cancel". When raised out of the TaskStore,
    ``task`` holds the task as committed despite the failure.
    """

    def __init__(self, message: str, stage: str = "schedule", task: Task | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.task = task


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def schedule(self, trigger_at: datetime, payload: NotificationPayload) -> str: ...

    async def cancel(self, handle: str) -> None: ...
