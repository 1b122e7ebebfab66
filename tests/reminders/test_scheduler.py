"""Tests for the due-reminder scheduler."""
import asyncio
from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from goalflow.models import Reminder
from goalflow.reminders.cron import as_utc
from goalflow.reminders.scheduler import ReminderScheduler

from conftest import BASE_TIME

NOW = BASE_TIME


class RecordingNotifier:
    def __init__(self, fail_for: set | None = None):
        self.fired: list[tuple] = []
        self.fail_for = fail_for or set()

    async def notify(self, reminder: Reminder, fired_at: datetime) -> None:
        if reminder.id in self.fail_for:
            raise RuntimeError("smtp down")
        self.fired.append((reminder.id, fired_at))


@pytest.fixture
async def goal(make_goal, user_id):
    return await make_goal(user_id)


@pytest.fixture
def add_reminder(db_session, goal):
    async def _add(next_run: datetime | None, cron_expr: str = "0 * * * *", **fields) -> Reminder:
        reminder = Reminder(goal_id=goal.id, cron_expr=cron_expr, next_run=next_run, **fields)
        db_session.add(reminder)
        await db_session.commit()
        await db_session.refresh(reminder)
        return reminder

    return _add


async def stored_next_run(session_factory, reminder_id) -> datetime | None:
    async with session_factory() as db:
        reminder = (await db.exec(select(Reminder).where(Reminder.id == reminder_id))).one()
        return as_utc(reminder.next_run) if reminder.next_run else None


class TestProcessDue:
    async def test__fires_unset_and_past_but_not_future(
        self, session_factory, add_reminder
    ) -> None:
        never = await add_reminder(None)
        past = await add_reminder(NOW - timedelta(hours=1))
        future = await add_reminder(NOW + timedelta(hours=1))
        notifier = RecordingNotifier()

        report = await ReminderScheduler(session_factory, notifier).process_due(NOW)

        assert report.selected == 2
        assert set(report.fired) == {never.id, past.id}
        assert {rid for rid, _ in notifier.fired} == {never.id, past.id}
        assert await stored_next_run(session_factory, future.id) == NOW + timedelta(hours=1)

    async def test__due_exactly_now_fires(self, session_factory, add_reminder) -> None:
        reminder = await add_reminder(NOW)

        report = await ReminderScheduler(session_factory, RecordingNotifier()).process_due(NOW)

        assert report.fired == [reminder.id]

    async def test__next_run_moves_strictly_past_now(
        self, session_factory, add_reminder
    ) -> None:
        # NOW is on the hour, so the hourly slot equal to NOW must be skipped
        reminder = await add_reminder(NOW - timedelta(hours=3))

        await ReminderScheduler(session_factory, RecordingNotifier()).process_due(NOW)

        assert await stored_next_run(session_factory, reminder.id) == NOW + timedelta(hours=1)

    async def test__inactive_reminders_are_ignored(self, session_factory, add_reminder) -> None:
        await add_reminder(NOW - timedelta(hours=1), is_active=False)
        notifier = RecordingNotifier()

        report = await ReminderScheduler(session_factory, notifier).process_due(NOW)

        assert report.selected == 0
        assert notifier.fired == []

    async def test__batch_takes_unset_then_oldest_first(
        self, session_factory, add_reminder
    ) -> None:
        newest = await add_reminder(NOW - timedelta(minutes=5))
        oldest = await add_reminder(NOW - timedelta(days=2))
        never = await add_reminder(None)

        report = await ReminderScheduler(
            session_factory, RecordingNotifier(), batch_size=2
        ).process_due(NOW)

        assert report.fired == [never.id, oldest.id]
        assert await stored_next_run(session_factory, newest.id) == NOW - timedelta(minutes=5)

    async def test__second_tick_finds_nothing_due(self, session_factory, add_reminder) -> None:
        await add_reminder(NOW - timedelta(hours=1))
        scheduler = ReminderScheduler(session_factory, RecordingNotifier())

        await scheduler.process_due(NOW)
        report = await scheduler.process_due(NOW)

        assert report.selected == 0


class TestFailureIsolation:
    async def test__malformed_cron_is_reported_and_others_still_fire(
        self, session_factory, add_reminder
    ) -> None:
        broken_due = NOW - timedelta(hours=2)
        broken = await add_reminder(broken_due, cron_expr="not a cron")
        healthy = await add_reminder(NOW - timedelta(hours=1))
        notifier = RecordingNotifier()

        report = await ReminderScheduler(session_factory, notifier).process_due(NOW)

        assert list(report.failed) == [broken.id]
        assert report.fired == [healthy.id]
        assert [rid for rid, _ in notifier.fired] == [healthy.id]
        assert await stored_next_run(session_factory, broken.id) == broken_due
        assert await stored_next_run(session_factory, healthy.id) == NOW + timedelta(hours=1)

    async def test__never_occurring_cron_is_reported_and_others_still_commit(
        self, session_factory, add_reminder
    ) -> None:
        impossible_due = NOW - timedelta(hours=2)
        impossible = await add_reminder(impossible_due, cron_expr="0 0 31 2 *")
        healthy = await add_reminder(NOW - timedelta(hours=1))
        notifier = RecordingNotifier()

        report = await ReminderScheduler(session_factory, notifier).process_due(NOW)

        assert list(report.failed) == [impossible.id]
        assert report.fired == [healthy.id]
        assert [rid for rid, _ in notifier.fired] == [healthy.id]
        assert await stored_next_run(session_factory, impossible.id) == impossible_due
        assert await stored_next_run(session_factory, healthy.id) == NOW + timedelta(hours=1)

    async def test__delivery_failure_still_advances_next_run(
        self, session_factory, add_reminder
    ) -> None:
        reminder = await add_reminder(NOW - timedelta(hours=1))
        notifier = RecordingNotifier(fail_for={reminder.id})

        report = await ReminderScheduler(session_factory, notifier).process_due(NOW)

        assert report.fired == [reminder.id]
        assert await stored_next_run(session_factory, reminder.id) == NOW + timedelta(hours=1)


class TestRunForever:
    async def test__keeps_ticking_after_a_failed_tick(self, session_factory) -> None:
        scheduler = ReminderScheduler(session_factory, RecordingNotifier())
        calls = []

        async def flaky_tick(now=None):
            calls.append(now)
            if len(calls) == 1:
                raise RuntimeError("database restarting")
            if len(calls) == 3:
                raise asyncio.CancelledError

        scheduler.process_due = flaky_tick
        with pytest.raises(asyncio.CancelledError):
            await scheduler.run_forever(interval_seconds=0)

        assert len(calls) == 3
