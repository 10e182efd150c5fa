"""
Quicktask — Notification Lifecycle.

Owns the one-notification-per-task rule. Every request for a task (the
"key") goes through a per-key lock, so the old handle is always cancelled
before a new one is requested. Different tasks do not wait on each other.

Each request also records a generation number for its key. When the
notifier answers after the key was withdrawn or superseded (the task was
deleted, or its reminder changed again), the late handle is cancelled on
the spot and never handed back.

This module is provider-agnostic: it depends on the NotificationPort
protocol, which is passed in at construction.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from datetime import datetime
from typing import TYPE_CHECKING, AsyncIterator

from src.ports.notification_port import SchedulingError

if TYPE_CHECKING:
    from src.data.models import NotificationPayload
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


class NotificationLifecycle:
    """Schedules, reschedules and cancels reminders on behalf of tasks."""

    def __init__(self, notifier: NotificationPort) -> None:
        self._notifier = notifier
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._desired: dict[str, int] = {}
        self._generation = itertools.count(1)

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def schedule(
        self,
        key: str,
        at: datetime | None,
        now: datetime,
        payload: NotificationPayload,
    ) -> str | None:
        """Schedule a reminder at *at*, or return None if it is not in the future."""
        async with self._locked(key):
            generation = self._claim(key)
            return await self._schedule(key, generation, at, now, payload)

    async def reschedule(
        self,
        key: str,
        old_handle: str | None,
        at: datetime | None,
        now: datetime,
        payload: NotificationPayload,
    ) -> str | None:
        """Cancel *old_handle* (if any), then schedule *at* (if set).

        Raises:
            SchedulingError: stage "cancel" if the old handle could not be
                cancelled (nothing new is scheduled), stage "schedule" if the
                old handle is gone but the new request failed.
        """
        async with self._locked(key):
            generation = self._claim(key)
            if old_handle is not None:
                await self.cancel(old_handle)
            return await self._schedule(key, generation, at, now, payload)

    async def cancel(self, handle: str) -> None:
        """Cancel a scheduled notification. Already-fired handles are fine."""
        try:
            await self._notifier.cancel(handle)
            logger.debug("Cancelled notification %s", handle)
        except Exception as exc:
            logger.error("Failed to cancel notification %s: %s", handle, exc)
            raise SchedulingError(f"Could not cancel notification {handle}: {exc}", stage="cancel") from exc

    def withdraw(self, key: str) -> None:
        """Mark *key* as wanting no reminder; in-flight requests will be undone."""
        self._desired.pop(key, None)
        if key not in self._lock_users:
            self._locks.pop(key, None)

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        # A key's lock lives while anyone holds or waits on it, so a request
        # queued behind a withdrawn one still shares the lock with later ones.
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                if key not in self._desired:
                    self._locks.pop(key, None)

    def _claim(self, key: str) -> int:
        generation = next(self._generation)
        self._desired[key] = generation
        return generation

    async def _schedule(
        self,
        key: str,
        generation: int,
        at: datetime | None,
        now: datetime,
        payload: NotificationPayload,
    ) -> str | None:
        if at is None:
            return None
        if at <= now:
            logger.info("Reminder %s for %s is not in the future, not scheduling", at.isoformat(), key)
            return None

        try:
            handle = await self._notifier.schedule(at, payload)
        except Exception as exc:
            logger.error("Failed to schedule reminder for %s at %s: %s", key, at.isoformat(), exc)
            raise SchedulingError(f"Could not schedule reminder at {at.isoformat()}: {exc}", stage="schedule") from exc

        if self._desired.get(key) != generation:
            logger.info("Reminder for %s was withdrawn while scheduling, cancelling %s", key, handle)
            try:
                await self.cancel(handle)
            except SchedulingError as exc:
                # Any previous handle is already gone at this point.
                exc.stage = "schedule"
                raise
            return None

        logger.info("Scheduled reminder %s for %s at %s", handle, key, at.isoformat())
        return handle
