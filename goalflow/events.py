import asyncio
import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressLogCreated:
    id: UUID
    goal_id: UUID
    delta: int
    note: str | None
    created_at: datetime

    def to_message(self) -> dict:
        data = asdict(self)
        data["id"] = str(self.id)
        data["goal_id"] = str(self.goal_id)
        data["created_at"] = self.created_at.isoformat()
        return data


class EventPublisher(Protocol):
    async def publish(self, event: ProgressLogCreated) -> None: ...


class ProgressBroadcaster:
    """
    In-process fan-out of progress events to live subscribers of a goal.

    Publishing never blocks and never raises: a subscriber whose queue is
    full misses the event.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: dict[UUID, set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, goal_id: UUID) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[goal_id].add(queue)
        return queue

    def unsubscribe(self, goal_id: UUID, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(goal_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[goal_id]

    def subscriber_count(self, goal_id: UUID) -> int:
        return len(self._subscribers.get(goal_id, ()))

    async def publish(self, event: ProgressLogCreated) -> None:
        for queue in list(self._subscribers.get(event.goal_id, ())):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Dropping progress event for slow subscriber of goal %s", event.goal_id)
