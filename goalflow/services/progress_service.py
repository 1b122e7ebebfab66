import logging
from uuid import UUID

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from goalflow.core.result import Result
from goalflow.database import STORE_ERRORS
from goalflow.events import EventPublisher, ProgressLogCreated
from goalflow.models import Goal, ProgressLog, ProgressLogCreate, ProgressLogRead
from goalflow.services.goal_query import clamp_paging
from goalflow.services.goal_service import goal_not_found, store_unavailable

logger = logging.getLogger(__name__)


class ProgressService:
    def __init__(self, db: AsyncSession, publisher: EventPublisher):
        self.db = db
        self.publisher = publisher

    async def owns_goal(self, user_id: UUID, goal_id: UUID) -> bool:
        query = select(Goal.id).where(Goal.id == goal_id, Goal.user_id == user_id)
        return (await self.db.exec(query)).first() is not None

    async def create_progress_log(
        self, user_id: UUID, goal_id: UUID, data: ProgressLogCreate
    ) -> Result[ProgressLogRead]:
        try:
            if not await self.owns_goal(user_id, goal_id):
                return goal_not_found()
            log = ProgressLog(goal_id=goal_id, delta=data.delta, note=data.note)
            self.db.add(log)
            await self.db.commit()
            await self.db.refresh(log)
        except STORE_ERRORS as e:
            return store_unavailable(e)

        # published only after the commit; subscribers are best-effort
        event = ProgressLogCreated(log.id, log.goal_id, log.delta, log.note, log.created_at)
        try:
            await self.publisher.publish(event)
        except Exception:
            logger.exception("Publishing progress event for goal %s failed", goal_id)

        return Result.success(ProgressLogRead.model_validate(log))

    async def list_progress_logs(
        self,
        user_id: UUID,
        goal_id: UUID,
        page: int | None,
        page_size: int | None,
        default_page_size: int = 50,
        max_page_size: int = 200,
    ) -> Result[list[ProgressLogRead]]:
        page, page_size = clamp_paging(page, page_size, default_page_size, max_page_size)
        try:
            if not await self.owns_goal(user_id, goal_id):
                return goal_not_found()
            query = (
                select(ProgressLog)
                .where(ProgressLog.goal_id == goal_id)
                .order_by(ProgressLog.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            logs = (await self.db.exec(query)).all()
        except STORE_ERRORS as e:
            return store_unavailable(e)
        return Result.success([ProgressLogRead.model_validate(log) for log in logs])
