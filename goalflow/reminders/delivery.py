import logging
from datetime import datetime
from typing import Protocol

from goalflow.models import Reminder

logger = logging.getLogger(__name__)


class ReminderNotifier(Protocol):
    """
    Delivery channel for fired reminders.

    Delivery is fire-and-forget and may see the same occurrence more than
    once, so implementations must tolerate duplicates.
    """

    async def notify(self, reminder: Reminder, fired_at: datetime) -> None: ...


class LoggingNotifier:
    """Placeholder channel that only records the firing."""

    async def notify(self, reminder: Reminder, fired_at: datetime) -> None:
        logger.info(
            "Reminder fired: goal %s via %s at %s",
            reminder.goal_id,
            reminder.channel,
            fired_at.isoformat(),
        )
