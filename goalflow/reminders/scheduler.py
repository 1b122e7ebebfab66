"""
Due-reminder processing.

Each tick:
1. Selects up to ``batch_size`` active reminders whose ``next_run`` is unset
   or at/before now, oldest first (unset first)
2. Fires each through the notifier and moves ``next_run`` to the next cron
   occurrence strictly after now
3. Commits all new ``next_run`` values at once

A reminder whose cron expression is malformed or never occurs is reported and
keeps its old ``next_run``; it does not hold up the rest of the batch. Ticks
are not exclusive across processes, so a reminder can fire more than once for
the same occurrence.

Usage (single tick, e.g. from cron):
    python -m goalflow.reminders.scheduler
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import nulls_first, or_
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select

from goalflow.models import Reminder
from goalflow.reminders.cron import CronSchedule, InvalidCronExpression, as_utc
from goalflow.reminders.delivery import LoggingNotifier, ReminderNotifier

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass
class ReminderRunReport:
    """What one processing pass did."""

    ran_at: datetime
    selected: int = 0
    fired: list[UUID] = field(default_factory=list)
    failed: dict[UUID, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, int]:
        return {
            "selected": self.selected,
            "fired": len(self.fired),
            "failed": len(self.failed),
        }


class ReminderScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier: ReminderNotifier | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or LoggingNotifier()
        self.batch_size = batch_size

    def due_query(self, now: datetime):
        return (
            select(Reminder)
            .where(
                Reminder.is_active == True,  # noqa: E712
                or_(Reminder.next_run.is_(None), Reminder.next_run <= now),
            )
            .order_by(nulls_first(Reminder.next_run.asc()))
            .limit(self.batch_size)
        )

    async def process_due(self, now: datetime | None = None) -> ReminderRunReport:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        report = ReminderRunReport(ran_at=now)

        async with self.session_factory() as db:
            due = (await db.exec(self.due_query(now))).all()
            report.selected = len(due)

            for reminder in due:
                try:
                    next_run = CronSchedule.parse(reminder.cron_expr).next_after(now)
                except InvalidCronExpression as e:
                    logger.error("Reminder %s skipped: %s", reminder.id, e)
                    report.failed[reminder.id] = str(e)
                    continue

                try:
                    await self.notifier.notify(reminder, now)
                except Exception:
                    # delivery failures belong to the channel; not retried here
                    logger.exception("Reminder %s delivery failed", reminder.id)

                reminder.next_run = next_run
                report.fired.append(reminder.id)

            if report.fired:
                await db.commit()

        if report.selected:
            logger.info("Reminder tick complete: %s", report.to_dict())
        return report

    async def run_forever(self, interval_seconds: float = 60.0):
        """Tick until cancelled. A failed tick is logged and the loop goes on."""
        logger.info("Reminder scheduler started (every %ss)", interval_seconds)
        while True:
            try:
                await self.process_due()
            except Exception:
                logger.exception("Reminder tick failed")
            await asyncio.sleep(interval_seconds)


async def main() -> ReminderRunReport:
    from goalflow.core.config import get_settings
    from goalflow.database import async_session, engine

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    scheduler = ReminderScheduler(async_session, batch_size=settings.reminder_batch_size)
    try:
        return await scheduler.process_due()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
