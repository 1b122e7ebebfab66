from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.requests import HTTPConnection
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from typing_extensions import Annotated

from goalflow.cache.layer import GoalsCache
from goalflow.core.config import SettingsDep
from goalflow.core.result import (
    GOAL_NOT_FOUND,
    REMINDER_NOT_FOUND,
    STORE_UNAVAILABLE,
    Result,
)
from goalflow.database import async_session, get_db
from goalflow.events import ProgressBroadcaster
from goalflow.services.goal_service import GoalService
from goalflow.services.progress_service import ProgressService
from goalflow.services.reminder_service import ReminderService

ERROR_STATUS = {
    GOAL_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    REMINDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_current_user_id(x_user_id: Annotated[UUID, Header()]) -> UUID:
    """Caller identity, authenticated upstream and forwarded as X-User-Id."""
    return x_user_id


def get_session_factory() -> async_sessionmaker:
    """Session factory for handlers that must not hold a session open."""
    return async_session


def get_goals_cache(connection: HTTPConnection) -> GoalsCache:
    return connection.app.state.goals_cache


def get_progress_broadcaster(connection: HTTPConnection) -> ProgressBroadcaster:
    return connection.app.state.progress_broadcaster


def get_goal_service(
    settings: SettingsDep,
    db: AsyncSession = Depends(get_db),
    cache: GoalsCache = Depends(get_goals_cache),
) -> GoalService:
    return GoalService(db, cache, settings)


def get_progress_service(
    db: AsyncSession = Depends(get_db),
    broadcaster: ProgressBroadcaster = Depends(get_progress_broadcaster),
) -> ProgressService:
    return ProgressService(db, broadcaster)


def get_reminder_service(db: AsyncSession = Depends(get_db)) -> ReminderService:
    return ReminderService(db)


def unwrap(result: Result):
    """Return the value of a successful result or raise the mapped HTTP error."""
    if result.is_success:
        return result.value
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": result.error.code, "message": result.error.message},
    )


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
