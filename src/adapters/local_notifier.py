"""Local notification adapter — implements NotificationPort on the event loop.

Each reminder is an ``asyncio`` timer that hands the payload to a delivery
callback when it fires (by default, a log line). Cancelling a handle that
already fired or was already cancelled is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable

from src.data.models import NotificationPayload

logger = logging.getLogger(__name__)


def _log_delivery(payload: NotificationPayload) -> None:
    logger.info("Reminder: %s: %s", payload.title, payload.body)


class LocalNotifier:
    """In-process implementation of NotificationPort."""

    def __init__(self, deliver: Callable[[NotificationPayload], None] | None = None) -> None:
        self._deliver = deliver or _log_delivery
        self._timers: dict[str, asyncio.TimerHandle] = {}

    async def schedule(self, trigger_at: datetime, payload: NotificationPayload) -> str:
        # Wall-clock "now" in the trigger's own timezone (naive stays naive).
        now = datetime.now(trigger_at.tzinfo)
        delay = max(0.0, (trigger_at - now).total_seconds())

        handle = uuid.uuid4().hex
        loop = asyncio.get_running_loop()
        self._timers[handle] = loop.call_later(delay, self._fire, handle, payload)
        logger.debug("Timer %s set to fire in %.0fs", handle, delay)
        return handle

    async def cancel(self, handle: str) -> None:
        timer = self._timers.pop(handle, None)
        if timer is None:
            logger.debug("Timer %s already fired or cancelled", handle)
            return
        timer.cancel()

    def pending(self) -> list[str]:
        """Handles of reminders that have not fired or been cancelled yet."""
        return list(self._timers)

    def _fire(self, handle: str, payload: NotificationPayload) -> None:
        self._timers.pop(handle, None)
        try:
            self._deliver(payload)
        except Exception as exc:
            logger.error("Reminder delivery failed for %s: %s", handle, exc)
