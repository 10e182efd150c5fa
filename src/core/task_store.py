"""
Quicktask — Task Store.

The single owner of the in-memory task list. Every mutation runs under one
asyncio lock, so a mutation that suspends on notifier I/O cannot interleave
with another one and observe a half-updated handle.

Validation happens before anything is touched. Notification failures are
best effort: the task change is committed, then the SchedulingError is
raised with the committed task attached as ``exc.task``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime

from pydantic import BaseModel

from src.core.notification_lifecycle import NotificationLifecycle
from src.core.reminder_anchor import (
    derive_default,
    rederive_on_deadline_change,
    reminder_after_deadline,
)
from src.data.models import Category, EntryMode, NotificationPayload, Task, TaskFilter
from src.ports.notification_port import SchedulingError

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Raised for a blank title or an unknown task id on edit."""


class TaskDraft(BaseModel):
    """Input for creating a task.

    Category, deadline and reminder only apply in template mode.
    """
    title: str
    entry_mode: EntryMode = EntryMode.SIMPLE
    category: Category | None = None
    deadline: datetime | None = None
    reminder_at: datetime | None = None


class TaskPatch(BaseModel):
    """Partial update for a task.

    Only explicitly passed fields are applied, so ``TaskPatch(reminder_at=None)``
    clears the reminder while ``TaskPatch()`` leaves it alone.
    """
    title: str | None = None
    category: Category | None = None
    deadline: datetime | None = None
    reminder_at: datetime | None = None


def _require_title(raw: str | None) -> str:
    title = (raw or "").strip()
    if not title:
        raise ValidationError("Task title must not be empty")
    return title


def _warn_if_reminder_after_deadline(task: Task) -> None:
    if reminder_after_deadline(task.deadline, task.reminder_at):
        logger.warning(
            "Task %s has its reminder (%s) after its deadline (%s)",
            task.id, task.reminder_at.isoformat(), task.deadline.isoformat(),
        )


class TaskStore:
    """In-memory task list, newest first."""

    def __init__(self, lifecycle: NotificationLifecycle, reminder_title: str = "Task reminder") -> None:
        self._lifecycle = lifecycle
        self._reminder_title = reminder_title
        self._tasks: list[Task] = []
        self._lock = asyncio.Lock()

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get(self, task_id: str) -> Task:
        for task in self._tasks:
            if task.id == task_id:
                return task
        raise ValidationError(f"Task {task_id!r} not found")

    def filter(self, which: TaskFilter = TaskFilter.ALL) -> list[Task]:
        """Return tasks matching *which*, most recently created first."""
        which = TaskFilter(which)
        if which is TaskFilter.ACTIVE:
            return [t for t in self._tasks if not t.completed]
        if which is TaskFilter.COMPLETED:
            return [t for t in self._tasks if t.completed]
        return list(self._tasks)

    def active_count(self) -> int:
        return sum(1 for t in self._tasks if not t.completed)

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    async def create(self, draft: TaskDraft, now: datetime) -> Task:
        """Validate and store a new task, scheduling its reminder if future-dated."""
        task = Task(id=uuid.uuid4().hex, title=_require_title(draft.title), created_at=now)

        if draft.entry_mode is EntryMode.TEMPLATE:
            task.entry_mode = EntryMode.TEMPLATE
            task.category = draft.category or Category.WORK
            task.deadline = draft.deadline
            task.reminder_at = draft.reminder_at
            if task.deadline is not None and task.reminder_at is None:
                task.reminder_at = derive_default(task.deadline)
            _warn_if_reminder_after_deadline(task)

        error: SchedulingError | None = None
        async with self._lock:
            if task.reminder_at is not None:
                try:
                    task.notification_handle = await self._lifecycle.schedule(
                        task.id, task.reminder_at, now, self._payload(task.title),
                    )
                except SchedulingError as exc:
                    error = exc
            self._tasks.insert(0, task)

        logger.info("Created task %s '%s' (%s)", task.id, task.title, task.entry_mode.value)
        if error is not None:
            error.task = task
            raise error
        return task

    async def update(self, task_id: str, patch: TaskPatch, now: datetime) -> Task:
        """Apply *patch* to a task.

        When the deadline changes, the caller is expected to have folded the
        re-derived reminder into the patch (see ``change_deadline``).
        """
        async with self._lock:
            return await self._apply(self.get(task_id), patch, now)

    async def change_deadline(self, task_id: str, new_deadline: datetime | None, now: datetime) -> Task:
        """Move a task's deadline, carrying an anchored reminder along with it.

        Clearing the deadline leaves the reminder as it is.
        """
        async with self._lock:
            task = self.get(task_id)
            if new_deadline is None:
                patch = TaskPatch(deadline=None)
            else:
                reminder = rederive_on_deadline_change(task.deadline, task.reminder_at, new_deadline)
                patch = TaskPatch(deadline=new_deadline, reminder_at=reminder)
            return await self._apply(task, patch, now)

    async def toggle_completed(self, task_id: str) -> Task:
        """Flip the completed flag. Reminders are left alone."""
        async with self._lock:
            task = self.get(task_id)
            task.completed = not task.completed
        logger.info("Task %s completed=%s", task.id, task.completed)
        return task

    async def remove(self, task_id: str) -> None:
        """Cancel the task's reminder, then drop it. Unknown ids are ignored."""
        # Withdraw before queueing on the lock so an in-flight schedule for
        # this task cancels its own handle when it lands.
        self._lifecycle.withdraw(task_id)
        async with self._lock:
            task = next((t for t in self._tasks if t.id == task_id), None)
            if task is None:
                logger.debug("remove: task %s not found, nothing to do", task_id)
                return
            await self._release_handle(task)
            self._tasks.remove(task)
        logger.info("Removed task %s", task_id)

    async def clear_completed(self) -> None:
        """Remove every completed task, cancelling each reminder first.

        A task whose reminder could not be cancelled is kept; the first such
        error is raised once the sweep is done.
        """
        first_error: SchedulingError | None = None
        removed = 0
        async with self._lock:
            for task in [t for t in self._tasks if t.completed]:
                self._lifecycle.withdraw(task.id)
                try:
                    await self._release_handle(task)
                except SchedulingError as exc:
                    logger.warning("Keeping completed task %s: %s", task.id, exc)
                    first_error = first_error or exc
                    continue
                self._tasks.remove(task)
                removed += 1

        logger.info("Cleared %d completed task(s)", removed)
        if first_error is not None:
            raise first_error

    # -----------------------------------------------------------------------
    # Internals (caller holds the lock)
    # -----------------------------------------------------------------------

    def _payload(self, title: str) -> NotificationPayload:
        return NotificationPayload(title=self._reminder_title, body=title)

    async def _release_handle(self, task: Task) -> None:
        if task.notification_handle is None:
            return
        try:
            await self._lifecycle.cancel(task.notification_handle)
        except SchedulingError as exc:
            exc.task = task
            raise
        task.notification_handle = None

    async def _apply(self, task: Task, patch: TaskPatch, now: datetime) -> Task:
        fields = patch.model_fields_set

        title = _require_title(patch.title) if "title" in fields else task.title
        category = patch.category if "category" in fields else task.category
        deadline = patch.deadline if "deadline" in fields else task.deadline
        reminder_at = patch.reminder_at if "reminder_at" in fields else task.reminder_at

        entry_mode = task.entry_mode
        if entry_mode is EntryMode.SIMPLE and (category, deadline, reminder_at) != (None, None, None):
            entry_mode = EntryMode.TEMPLATE
            category = category or Category.WORK

        handle = task.notification_handle
        needs_reschedule = reminder_at != task.reminder_at or (
            title != task.title and handle is not None
        )

        error: SchedulingError | None = None
        if needs_reschedule:
            try:
                handle = await self._lifecycle.reschedule(
                    task.id, handle, reminder_at, now, self._payload(title),
                )
            except SchedulingError as exc:
                error = exc
                if exc.stage == "schedule":
                    handle = None

        task.title = title
        task.entry_mode = entry_mode
        task.category = category
        task.deadline = deadline
        task.reminder_at = reminder_at
        task.notification_handle = handle
        _warn_if_reminder_after_deadline(task)
        logger.info("Updated task %s", task.id)

        if error is not None:
            error.task = task
            raise error
        return task
