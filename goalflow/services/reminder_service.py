import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from goalflow.core.result import REMINDER_INVALID_CRON, REMINDER_NOT_FOUND, Result
from goalflow.database import STORE_ERRORS
from goalflow.models import Goal, Reminder, ReminderCreate, ReminderRead
from goalflow.reminders.cron import CronSchedule, InvalidCronExpression
from goalflow.services.goal_service import goal_not_found, store_unavailable

logger = logging.getLogger(__name__)


class ReminderService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_reminder(
        self, user_id: UUID, data: ReminderCreate, now: datetime | None = None
    ) -> Result[ReminderRead]:
        now = now or datetime.now(timezone.utc)
        # reject a bad expression before it ever reaches the scheduler
        try:
            schedule = CronSchedule.parse(data.cron_expr)
            next_run = schedule.next_after(now)
        except InvalidCronExpression as e:
            return Result.failure(REMINDER_INVALID_CRON, str(e))

        try:
            query = select(Goal.id).where(
                Goal.id == data.goal_id, Goal.user_id == user_id
            )
            if (await self.db.exec(query)).first() is None:
                return goal_not_found()

            reminder = Reminder(
                goal_id=data.goal_id,
                channel=data.channel.value,
                cron_expr=schedule.expr,
                next_run=next_run,
            )
            self.db.add(reminder)
            await self.db.commit()
            await self.db.refresh(reminder)
        except STORE_ERRORS as e:
            return store_unavailable(e)
        logger.info("Reminder %s created for goal %s", reminder.id, reminder.goal_id)
        return Result.success(ReminderRead.model_validate(reminder))

    async def set_active(
        self,
        user_id: UUID,
        reminder_id: UUID,
        active: bool,
        now: datetime | None = None,
    ) -> Result[ReminderRead]:
        """
        Activate or deactivate a reminder. Reactivation schedules the next
        occurrence from now rather than replaying missed ones.
        """
        try:
            query = (
                select(Reminder)
                .join(Goal, Goal.id == Reminder.goal_id)
                .where(Reminder.id == reminder_id, Goal.user_id == user_id)
            )
            reminder = (await self.db.exec(query)).first()
            if reminder is None:
                return Result.failure(REMINDER_NOT_FOUND, "Reminder not found.")

            if active and not reminder.is_active:
                try:
                    reminder.next_run = CronSchedule.parse(reminder.cron_expr).next_after(
                        now or datetime.now(timezone.utc)
                    )
                except InvalidCronExpression as e:
                    return Result.failure(REMINDER_INVALID_CRON, str(e))
            reminder.is_active = active

            await self.db.commit()
            await self.db.refresh(reminder)
        except STORE_ERRORS as e:
            return store_unavailable(e)
        return Result.success(ReminderRead.model_validate(reminder))
