import logging
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from sqlalchemy import delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from goalflow.cache.decorators import invalidates_goal_pages
from goalflow.cache.layer import GoalsCache
from goalflow.core.config import Settings
from goalflow.core.result import GOAL_NOT_FOUND, STORE_UNAVAILABLE, Result
from goalflow.database import STORE_ERRORS
from goalflow.models import (
    Goal,
    GoalCreate,
    GoalDetail,
    GoalPage,
    GoalUpdate,
    ProgressLog,
    Reminder,
)
from goalflow.services.goal_query import GoalQuerySpec, PagedGoalsQuery

logger = logging.getLogger(__name__)

# columns that accept an explicit null in a PATCH
NULLABLE_FIELDS = {"description"}


def store_unavailable(exc: Exception) -> Result:
    logger.error("System of record unavailable: %s", exc)
    return Result.failure(STORE_UNAVAILABLE, "The goal store is unavailable.")


def goal_not_found() -> Result:
    return Result.failure(GOAL_NOT_FOUND, "Goal not found or not owned by user.")


class GoalService:
    def __init__(
        self,
        db: AsyncSession,
        cache: GoalsCache,
        settings: Settings,
        query: PagedGoalsQuery | None = None,
    ):
        self.db = db
        self.cache = cache
        self.settings = settings
        self.query = query or PagedGoalsQuery()

    async def _owned_goal(self, user_id: UUID, goal_id: UUID) -> Goal | None:
        query = select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id)
        return (await self.db.exec(query)).first()

    @invalidates_goal_pages(lambda user_id, *_, **__: user_id)
    async def create_goal(self, user_id: UUID, data: GoalCreate) -> Result[GoalDetail]:
        goal = Goal(
            user_id=user_id,
            **data.model_dump(exclude={"priority", "title"}),
            title=data.title.strip(),
            priority=data.priority.value,
        )
        try:
            self.db.add(goal)
            await self.db.commit()
            await self.db.refresh(goal)
        except STORE_ERRORS as e:
            return store_unavailable(e)
        logger.info("Goal %s created for user %s", goal.id, user_id)
        return Result.success(GoalDetail.model_validate(goal))

    async def get_goal(self, user_id: UUID, goal_id: UUID) -> Result[GoalDetail]:
        """Single-goal reads always go to the store; only list pages are cached."""
        try:
            goal = await self._owned_goal(user_id, goal_id)
        except STORE_ERRORS as e:
            return store_unavailable(e)
        if goal is None:
            return goal_not_found()
        return Result.success(GoalDetail.model_validate(goal))

    async def list_goals(self, spec: GoalQuerySpec) -> Result[GoalPage]:
        async def load():
            return await self.query.execute(self.db, spec)

        try:
            page = await self.cache.get_or_load(
                spec.user_id,
                spec.cache_key,
                load,
                ttl=self.settings.goals_cache_ttl_seconds,
                schema=GoalPage,
            )
        except STORE_ERRORS as e:
            return store_unavailable(e)
        return Result.success(page)

    @invalidates_goal_pages(lambda user_id, *_, **__: user_id)
    async def update_goal(
        self, user_id: UUID, goal_id: UUID, data: GoalUpdate
    ) -> Result[GoalDetail]:
        try:
            goal = await self._owned_goal(user_id, goal_id)
            if goal is None:
                return goal_not_found()

            update_data = {
                field: value.value if isinstance(value, Enum) else value
                for field, value in data.model_dump(exclude_unset=True).items()
                if value is not None or field in NULLABLE_FIELDS
            }
            if "title" in update_data:
                update_data["title"] = update_data["title"].strip()
            goal.sqlmodel_update(update_data)
            goal.updated_at = datetime.now(timezone.utc)

            await self.db.commit()
            await self.db.refresh(goal)
        except STORE_ERRORS as e:
            return store_unavailable(e)
        return Result.success(GoalDetail.model_validate(goal))

    @invalidates_goal_pages(lambda user_id, *_, **__: user_id)
    async def delete_goal(self, user_id: UUID, goal_id: UUID) -> Result[bool]:
        try:
            goal = await self._owned_goal(user_id, goal_id)
            if goal is None:
                return goal_not_found()

            # reminders and progress logs go with their goal
            await self.db.execute(delete(Reminder).where(Reminder.goal_id == goal.id))
            await self.db.execute(
                delete(ProgressLog).where(ProgressLog.goal_id == goal.id)
            )
            await self.db.delete(goal)
            await self.db.commit()
        except STORE_ERRORS as e:
            return store_unavailable(e)
        logger.info("Goal %s deleted for user %s", goal_id, user_id)
        return Result.success(True)
