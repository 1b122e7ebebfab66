from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from goalflow.core.config import SettingsDep
from goalflow.dependencies import CurrentUserId, get_goal_service, unwrap
from goalflow.models import GoalCreate, GoalDetail, GoalPage, GoalUpdate
from goalflow.services.goal_query import GoalQuerySpec
from goalflow.services.goal_service import GoalService

router = APIRouter(prefix="/goals", tags=["goals"])


@router.post("/", response_model=GoalDetail, status_code=status.HTTP_201_CREATED)
async def create_goal(
    goal_data: GoalCreate,
    user_id: CurrentUserId,
    service: GoalService = Depends(get_goal_service),
):
    """Create a new goal"""
    return unwrap(await service.create_goal(user_id, goal_data))


@router.get("/", response_model=GoalPage)
async def list_goals(
    user_id: CurrentUserId,
    settings: SettingsDep,
    page: int = 1,
    page_size: int | None = Query(default=None, alias="pageSize"),
    search: str | None = Query(default=None, max_length=200),
    status_filter: str | None = Query(default=None, alias="status", max_length=32),
    priority: str | None = Query(default=None, max_length=32),
    service: GoalService = Depends(get_goal_service),
):
    """List goals, newest first. Out-of-range paging is clamped."""
    spec = GoalQuerySpec.build(
        user_id, page, page_size, search, status_filter, priority, settings=settings
    )
    return unwrap(await service.list_goals(spec))


@router.get("/{goal_id}", response_model=GoalDetail)
async def get_goal(
    goal_id: UUID,
    user_id: CurrentUserId,
    service: GoalService = Depends(get_goal_service),
):
    """Get a specific goal by ID"""
    return unwrap(await service.get_goal(user_id, goal_id))


@router.patch("/{goal_id}", response_model=GoalDetail)
async def update_goal(
    goal_id: UUID,
    goal_data: GoalUpdate,
    user_id: CurrentUserId,
    service: GoalService = Depends(get_goal_service),
):
    return unwrap(await service.update_goal(user_id, goal_id, goal_data))


@router.delete("/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_goal(
    goal_id: UUID,
    user_id: CurrentUserId,
    service: GoalService = Depends(get_goal_service),
):
    """Delete a goal with its progress logs and reminders"""
    unwrap(await service.delete_goal(user_id, goal_id))
