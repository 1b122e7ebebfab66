"""Tests for progress logging and event publication."""
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

from goalflow.core.result import GOAL_NOT_FOUND
from goalflow.events import ProgressBroadcaster, ProgressLogCreated
from goalflow.models import ProgressLog, ProgressLogCreate
from goalflow.services.progress_service import ProgressService

from conftest import BASE_TIME


class TestCreateProgressLog:
    async def test__stores_log_and_publishes_event(self, db_session, make_goal, user_id) -> None:
        goal = await make_goal(user_id)
        broadcaster = ProgressBroadcaster()
        queue = broadcaster.subscribe(goal.id)
        service = ProgressService(db_session, broadcaster)

        result = await service.create_progress_log(
            user_id, goal.id, ProgressLogCreate(delta=15, note="Ran 5km")
        )

        assert result.is_success
        event = queue.get_nowait()
        assert isinstance(event, ProgressLogCreated)
        assert (event.id, event.goal_id, event.delta) == (result.value.id, goal.id, 15)

    async def test__foreign_goal_is_not_found_and_nothing_published(
        self, db_session, make_goal, user_id
    ) -> None:
        goal = await make_goal(uuid.uuid4())
        publisher = AsyncMock()

        result = await ProgressService(db_session, publisher).create_progress_log(
            user_id, goal.id, ProgressLogCreate(delta=5)
        )

        assert result.error.code == GOAL_NOT_FOUND
        publisher.publish.assert_not_awaited()

    async def test__publish_failure_does_not_fail_the_write(
        self, db_session, make_goal, user_id
    ) -> None:
        goal = await make_goal(user_id)
        publisher = AsyncMock()
        publisher.publish.side_effect = RuntimeError("broker down")

        result = await ProgressService(db_session, publisher).create_progress_log(
            user_id, goal.id, ProgressLogCreate(delta=-5)
        )

        assert result.is_success
        assert result.value.delta == -5


class TestListProgressLogs:
    async def test__newest_first_and_paged(self, db_session, make_goal, user_id) -> None:
        goal = await make_goal(user_id)
        for i in range(5):
            db_session.add(
                ProgressLog(goal_id=goal.id, delta=i, created_at=BASE_TIME + timedelta(hours=i))
            )
        await db_session.commit()
        service = ProgressService(db_session, ProgressBroadcaster())

        first = await service.list_progress_logs(user_id, goal.id, page=1, page_size=2)
        last = await service.list_progress_logs(user_id, goal.id, page=3, page_size=2)

        assert [log.delta for log in first.value] == [4, 3]
        assert [log.delta for log in last.value] == [0]

    async def test__foreign_goal_is_not_found(self, db_session, make_goal, user_id) -> None:
        goal = await make_goal(uuid.uuid4())

        result = await ProgressService(db_session, ProgressBroadcaster()).list_progress_logs(
            user_id, goal.id, page=None, page_size=None
        )

        assert result.error.code == GOAL_NOT_FOUND
