"""Reminder anchoring — pure business logic.

A derived reminder sits a fixed offset before its deadline. While the
reminder keeps that relationship it follows the deadline around; once the
user picks some other reminder time it is never silently overridden.

No I/O: this module only transforms timestamps.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

DEFAULT_OFFSET = timedelta(minutes=5)
TOLERANCE = timedelta(seconds=1)


def derive_default(deadline: datetime) -> datetime:
    """Return the default reminder for *deadline*: five minutes before it."""
    return deadline - DEFAULT_OFFSET


def is_anchored(deadline: datetime | None, reminder: datetime | None) -> bool:
    """Check whether *reminder* is the derived default of *deadline* (strictly within one second)."""
    if deadline is None or reminder is None:
        return False
    return abs(reminder - derive_default(deadline)) < TOLERANCE


def rederive_on_deadline_change(
    prev_deadline: datetime | None,
    prev_reminder: datetime | None,
    new_deadline: datetime,
) -> datetime | None:
    """Return the reminder to store after the deadline moves to *new_deadline*.

    Args:
        prev_deadline: Deadline captured just before the change.
        prev_reminder: Reminder captured just before the change.
        new_deadline: The deadline being committed.

    Returns:
        ``new_deadline - 5min`` when there was nothing set yet or when the
        reminder was anchored to the previous deadline; otherwise the
        previous reminder unchanged (which may be None).
    """
    if prev_deadline is None and prev_reminder is None:
        return derive_default(new_deadline)

    if is_anchored(prev_deadline, prev_reminder):
        return derive_default(new_deadline)

    logger.debug("Reminder %s is not anchored to %s, keeping it", prev_reminder, prev_deadline)
    return prev_reminder


def reminder_after_deadline(deadline: datetime | None, reminder: datetime | None) -> bool:
    """True when both are set and the reminder fires after the deadline."""
    return deadline is not None and reminder is not None and reminder > deadline
