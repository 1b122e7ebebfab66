from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from goalflow.core.config import SettingsDep
from goalflow.dependencies import (
    CurrentUserId,
    get_progress_broadcaster,
    get_progress_service,
    get_session_factory,
    unwrap,
)
from goalflow.events import ProgressBroadcaster
from goalflow.models import ProgressLogCreate, ProgressLogRead
from goalflow.services.progress_service import ProgressService

router = APIRouter(tags=["progress"])


@router.post(
    "/goals/{goal_id}/progress-logs",
    response_model=ProgressLogRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_progress_log(
    goal_id: UUID,
    log_data: ProgressLogCreate,
    user_id: CurrentUserId,
    service: ProgressService = Depends(get_progress_service),
):
    """Log progress against a goal and notify live subscribers"""
    return unwrap(await service.create_progress_log(user_id, goal_id, log_data))


@router.get("/goals/{goal_id}/progress-logs", response_model=list[ProgressLogRead])
async def list_progress_logs(
    goal_id: UUID,
    user_id: CurrentUserId,
    settings: SettingsDep,
    page: int = 1,
    page_size: int | None = None,
    service: ProgressService = Depends(get_progress_service),
):
    return unwrap(
        await service.list_progress_logs(
            user_id,
            goal_id,
            page,
            page_size,
            settings.default_progress_page_size,
            settings.max_progress_page_size,
        )
    )


@router.websocket("/ws/goals/{goal_id}/progress")
async def progress_stream(
    websocket: WebSocket,
    goal_id: UUID,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    broadcaster: ProgressBroadcaster = Depends(get_progress_broadcaster),
):
    """
    Push every new progress log of a goal to the connected client.

    Ownership is checked on its own session, closed before the stream starts.
    """
    try:
        user_id = UUID(websocket.headers.get("x-user-id", ""))
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    async with session_factory() as db:
        owns_goal = await ProgressService(db, broadcaster).owns_goal(user_id, goal_id)
    if not owns_goal:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    queue = broadcaster.subscribe(goal_id)
    try:
        await websocket.send_json({"event": "joined", "goal_id": str(goal_id)})
        while True:
            event = await queue.get()
            await websocket.send_json({"event": "progress_logged", **event.to_message()})
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unsubscribe(goal_id, queue)
