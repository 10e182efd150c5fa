"""Tests for src.core.task_store — CRUD, filtering and reminder bookkeeping."""

import asyncio
from datetime import timedelta

import pytest

from conftest import FakeNotifier
from src.core.notification_lifecycle import NotificationLifecycle
from src.core.task_store import TaskDraft, TaskPatch, TaskStore, ValidationError
from src.data.models import Category, EntryMode, NotificationPayload, TaskFilter
from src.ports.notification_port import SchedulingError

FIVE_MIN = timedelta(minutes=5)


def _template(title="call mom", deadline=None, reminder_at=None, category=None):
    return TaskDraft(
        title=title,
        entry_mode=EntryMode.TEMPLATE,
        category=category,
        deadline=deadline,
        reminder_at=reminder_at,
    )


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["buy milk", "  buy milk ", "\tbuy milk\n"])
    async def test_title_trimmed_and_not_completed(self, store, now, raw):
        task = await store.create(TaskDraft(title=raw), now)
        assert task.title == "buy milk"
        assert task.completed is False
        assert task.created_at == now
        assert task.entry_mode is EntryMode.SIMPLE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["", "   "])
    async def test_blank_title_rejected(self, store, now, raw):
        with pytest.raises(ValidationError):
            await store.create(TaskDraft(title=raw), now)
        assert store.filter() == []

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, store, now):
        a = await store.create(TaskDraft(title="a"), now)
        b = await store.create(TaskDraft(title="b"), now)
        assert a.id != b.id

    @pytest.mark.asyncio
    async def test_simple_mode_drops_template_fields(self, store, notifier, now):
        task = await store.create(
            TaskDraft(title="a", category=Category.LIFE, deadline=now + timedelta(days=1)), now,
        )
        assert task.category is None
        assert task.deadline is None
        assert task.reminder_at is None
        assert notifier.calls == []

    @pytest.mark.asyncio
    async def test_template_schedules_future_reminder(self, store, notifier, now):
        reminder = now + timedelta(hours=3)
        task = await store.create(_template(deadline=now + timedelta(hours=4), reminder_at=reminder), now)
        assert task.notification_handle == "h1"
        assert task.category is Category.WORK
        assert notifier.calls == [
            ("schedule", reminder, NotificationPayload(title="Task reminder", body="call mom")),
        ]

    @pytest.mark.asyncio
    async def test_template_derives_default_reminder(self, store, notifier, now):
        deadline = now + timedelta(hours=4)
        task = await store.create(_template(deadline=deadline), now)
        assert task.reminder_at == deadline - FIVE_MIN
        assert notifier.calls[0][1] == deadline - FIVE_MIN

    @pytest.mark.asyncio
    async def test_past_reminder_not_scheduled(self, store, notifier, now):
        task = await store.create(_template(deadline=now, reminder_at=now - FIVE_MIN), now)
        assert task.reminder_at == now - FIVE_MIN
        assert task.notification_handle is None
        assert notifier.calls == []

    @pytest.mark.asyncio
    async def test_reminder_after_deadline_is_tolerated(self, store, now):
        deadline = now + timedelta(hours=1)
        task = await store.create(_template(deadline=deadline, reminder_at=deadline + FIVE_MIN), now)
        assert task.reminder_at > task.deadline
        assert task.notification_handle == "h1"

    @pytest.mark.asyncio
    async def test_scheduling_failure_still_stores_task(self, store, notifier, now):
        notifier.fail_schedule = True
        with pytest.raises(SchedulingError) as exc_info:
            await store.create(_template(deadline=now + timedelta(hours=1)), now)

        task = exc_info.value.task
        assert task is not None
        assert task.notification_handle is None
        assert store.filter() == [task]


# ---------------------------------------------------------------------------
# update / change_deadline
# ---------------------------------------------------------------------------


class TestUpdate:
    @pytest.mark.asyncio
    async def test_unknown_id_rejected(self, store, now):
        with pytest.raises(ValidationError):
            await store.update("missing", TaskPatch(title="x"), now)

    @pytest.mark.asyncio
    async def test_blank_title_rejected_without_changes(self, store, notifier, now):
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)
        with pytest.raises(ValidationError):
            await store.update(task.id, TaskPatch(title="  ", reminder_at=None), now)
        assert task.title == "call mom"
        assert task.notification_handle == "h1"
        assert notifier.ops() == ["schedule"]

    @pytest.mark.asyncio
    async def test_title_change_moves_reminder_body(self, store, notifier, now):
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)
        await store.update(task.id, TaskPatch(title="call dad"), now)
        assert task.title == "call dad"
        assert notifier.calls[1] == ("cancel", "h1")
        assert notifier.calls[2][2].body == "call dad"
        assert task.notification_handle == "h2"

    @pytest.mark.asyncio
    async def test_title_change_without_reminder_does_no_io(self, store, notifier, now):
        task = await store.create(TaskDraft(title="a"), now)
        await store.update(task.id, TaskPatch(title="b"), now)
        assert notifier.calls == []

    @pytest.mark.asyncio
    async def test_clearing_reminder_cancels_handle(self, store, notifier, now):
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)
        await store.update(task.id, TaskPatch(reminder_at=None), now)
        assert task.reminder_at is None
        assert task.notification_handle is None
        assert notifier.calls[-1] == ("cancel", "h1")
        assert notifier.live == set()

    @pytest.mark.asyncio
    async def test_untouched_fields_are_kept(self, store, now):
        deadline = now + timedelta(hours=1)
        task = await store.create(_template(deadline=deadline, category=Category.STUDY), now)
        await store.update(task.id, TaskPatch(title="read"), now)
        assert task.category is Category.STUDY
        assert task.deadline == deadline

    @pytest.mark.asyncio
    async def test_simple_task_promoted_to_template(self, store, now):
        task = await store.create(TaskDraft(title="a"), now)
        await store.update(task.id, TaskPatch(reminder_at=now + timedelta(hours=1)), now)
        assert task.entry_mode is EntryMode.TEMPLATE
        assert task.category is Category.WORK
        assert task.notification_handle == "h1"

    @pytest.mark.asyncio
    async def test_schedule_failure_leaves_no_handle(self, store, notifier, now):
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)
        notifier.fail_schedule = True
        new_reminder = now + timedelta(minutes=30)
        with pytest.raises(SchedulingError) as exc_info:
            await store.update(task.id, TaskPatch(reminder_at=new_reminder), now)
        assert exc_info.value.task is task
        assert task.reminder_at == new_reminder
        assert task.notification_handle is None

    @pytest.mark.asyncio
    async def test_cancel_failure_keeps_previous_handle(self, store, notifier, now):
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)
        notifier.fail_cancel = True
        with pytest.raises(SchedulingError):
            await store.update(task.id, TaskPatch(reminder_at=None), now)
        assert task.notification_handle == "h1"


class TestChangeDeadline:
    @pytest.mark.asyncio
    async def test_anchored_reminder_reschedules(self, store, notifier, now):
        d1 = now + timedelta(days=1)
        d2 = now + timedelta(days=2)
        task = await store.create(_template(deadline=d1), now)

        await store.change_deadline(task.id, d2, now)

        assert task.deadline == d2
        assert task.reminder_at == d2 - FIVE_MIN
        assert [c[:2] for c in notifier.calls] == [
            ("schedule", d1 - FIVE_MIN),
            ("cancel", "h1"),
            ("schedule", d2 - FIVE_MIN),
        ]
        assert task.notification_handle == "h2"

    @pytest.mark.asyncio
    async def test_explicit_reminder_untouched(self, store, notifier, now):
        d1 = now + timedelta(days=9, hours=10)
        explicit = now + timedelta(days=9, hours=8)
        task = await store.create(_template(deadline=d1, reminder_at=explicit), now)

        await store.change_deadline(task.id, now + timedelta(days=11, hours=10), now)

        assert task.reminder_at == explicit
        assert task.notification_handle == "h1"
        assert notifier.ops() == ["schedule"]

    @pytest.mark.asyncio
    async def test_first_deadline_establishes_reminder(self, store, now):
        task = await store.create(TaskDraft(title="a"), now)
        deadline = now + timedelta(hours=2)
        await store.change_deadline(task.id, deadline, now)
        assert task.reminder_at == deadline - FIVE_MIN
        assert task.notification_handle == "h1"

    @pytest.mark.asyncio
    async def test_clearing_deadline_keeps_reminder(self, store, notifier, now):
        deadline = now + timedelta(hours=2)
        task = await store.create(_template(deadline=deadline), now)
        await store.change_deadline(task.id, None, now)
        assert task.deadline is None
        assert task.reminder_at == deadline - FIVE_MIN
        assert notifier.ops() == ["schedule"]

    @pytest.mark.asyncio
    async def test_unknown_id(self, store, now):
        with pytest.raises(ValidationError):
            await store.change_deadline("missing", now, now)


# ---------------------------------------------------------------------------
# toggle / remove / clear / filter
# ---------------------------------------------------------------------------


class TestToggleCompleted:
    @pytest.mark.asyncio
    async def test_toggle_twice_restores(self, store, notifier, now):
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)
        calls_before = list(notifier.calls)

        await store.toggle_completed(task.id)
        assert task.completed is True
        await store.toggle_completed(task.id)
        assert task.completed is False

        assert notifier.calls == calls_before
        assert task.notification_handle == "h1"

    @pytest.mark.asyncio
    async def test_unknown_id(self, store):
        with pytest.raises(ValidationError):
            await store.toggle_completed("missing")


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_cancels_and_drops(self, store, notifier, now):
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)
        await store.remove(task.id)
        assert task.id not in [t.id for t in store.filter(TaskFilter.ALL)]
        assert notifier.calls[-1] == ("cancel", "h1")

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, store, now):
        task = await store.create(TaskDraft(title="a"), now)
        await store.remove(task.id)
        await store.remove(task.id)
        await store.remove("never-existed")
        assert store.filter() == []

    @pytest.mark.asyncio
    async def test_cancel_failure_keeps_task(self, store, notifier, now):
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)
        notifier.fail_cancel = True
        with pytest.raises(SchedulingError):
            await store.remove(task.id)
        assert store.filter() == [task]

    @pytest.mark.asyncio
    async def test_remove_during_in_flight_reschedule(self, now):
        class GatedNotifier(FakeNotifier):
            def __init__(self):
                super().__init__()
                self.gate = None
                self.waiting = asyncio.Event()

            async def schedule(self, trigger_at, payload):
                if self.gate is not None:
                    self.waiting.set()
                    await self.gate.wait()
                return await super().schedule(trigger_at, payload)

        notifier = GatedNotifier()
        store = TaskStore(NotificationLifecycle(notifier))
        task = await store.create(_template(deadline=now + timedelta(hours=1)), now)

        notifier.gate = asyncio.Event()
        update = asyncio.create_task(
            store.update(task.id, TaskPatch(reminder_at=now + timedelta(minutes=30)), now),
        )
        await notifier.waiting.wait()
        removal = asyncio.create_task(store.remove(task.id))
        await asyncio.sleep(0)
        notifier.gate.set()
        await update
        await removal

        assert notifier.ops() == ["schedule", "cancel", "schedule", "cancel"]
        assert notifier.live == set()
        assert store.filter() == []


class TestClearCompleted:
    @pytest.mark.asyncio
    async def test_clears_completed_and_cancels(self, store, notifier, now):
        done = await store.create(_template(title="done", deadline=now + timedelta(hours=1)), now)
        keep = await store.create(TaskDraft(title="keep"), now)
        await store.toggle_completed(done.id)

        await store.clear_completed()

        assert store.filter(TaskFilter.COMPLETED) == []
        assert store.filter(TaskFilter.ALL) == [keep]
        assert ("cancel", "h1") in notifier.calls

    @pytest.mark.asyncio
    async def test_nothing_completed(self, store, now):
        await store.create(TaskDraft(title="a"), now)
        await store.clear_completed()
        assert len(store.filter()) == 1

    @pytest.mark.asyncio
    async def test_cancel_failure_keeps_only_that_task(self, store, notifier, now):
        with_reminder = await store.create(_template(title="r", deadline=now + timedelta(hours=1)), now)
        plain = await store.create(TaskDraft(title="p"), now)
        await store.toggle_completed(with_reminder.id)
        await store.toggle_completed(plain.id)
        notifier.fail_cancel = True

        with pytest.raises(SchedulingError):
            await store.clear_completed()

        assert store.filter(TaskFilter.COMPLETED) == [with_reminder]


class TestFilter:
    @pytest.mark.asyncio
    async def test_newest_first_and_partitions(self, store, now):
        first = await store.create(TaskDraft(title="first"), now)
        second = await store.create(TaskDraft(title="second"), now)
        third = await store.create(TaskDraft(title="third"), now)
        await store.toggle_completed(second.id)

        assert store.filter(TaskFilter.ALL) == [third, second, first]
        assert store.filter(TaskFilter.ACTIVE) == [third, first]
        assert store.filter(TaskFilter.COMPLETED) == [second]
        assert store.filter("active") == [third, first]
        assert store.active_count() == 2

    @pytest.mark.asyncio
    async def test_returns_a_copy(self, store, now):
        await store.create(TaskDraft(title="a"), now)
        tasks = store.filter()
        tasks.clear()
        assert len(store.filter()) == 1

    @pytest.mark.asyncio
    async def test_get(self, store, now):
        task = await store.create(TaskDraft(title="a"), now)
        assert store.get(task.id) is task
        with pytest.raises(ValidationError):
            store.get("missing")
