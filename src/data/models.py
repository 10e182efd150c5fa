"""
Quicktask — Data Models.

Tasks live in memory only, owned by the TaskStore. A task carries at most
two time anchors (deadline, reminder) and at most one outstanding
notification handle.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class EntryMode(str, Enum):
    """How a task was entered: title only, or with category/deadline/reminder."""

    SIMPLE = "simple"
    TEMPLATE = "template"


class Category(str, Enum):
    WORK = "work"
    STUDY = "study"
    LIFE = "life"


class TaskFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class NotificationPayload:
    """Content shown when a reminder fires."""

    title: str
    body: str


@dataclass
class Task:
    """A single to-do item.

    Only the TaskStore mutates a Task. ``notification_handle`` is set only
    while a future-dated reminder is scheduled for the current
    ``reminder_at``.
    """

    id: str
    title: str
    created_at: datetime
    completed: bool = False
    entry_mode: EntryMode = EntryMode.SIMPLE
    category: Category | None = None
    deadline: datetime | None = None
    reminder_at: datetime | None = None
    notification_handle: str | None = None
