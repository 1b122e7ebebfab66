import logging
from uuid import UUID

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline

from goalflow.cache.keys import tag_key

logger = logging.getLogger(__name__)


class TagIndex:
    """
    Per-user set of live goals-page keys.

    The set is advisory: it may still list pages that already expired, but a
    page written after the last invalidation is always a member, because the
    membership is added in the same MULTI/EXEC as the page itself.
    """

    def __init__(self, redis: Redis, slack_seconds: int = 300):
        self.redis = redis
        self.slack_seconds = slack_seconds

    def stage_add(self, pipe: Pipeline, user_id: UUID | str, key: str, ttl: int):
        """Queue the membership update on a caller-owned transaction."""
        tag = tag_key(user_id)
        pipe.sadd(tag, key)
        pipe.expire(tag, ttl + self.slack_seconds)

    async def invalidate_user(self, user_id: UUID | str) -> int:
        """
        Delete every page tagged for the user. Returns the number of keys
        removed from the tag set.

        Only the members that were read are removed from the set, so a page
        stored concurrently stays tracked for the next invalidation.
        """
        tag = tag_key(user_id)
        members = list(await self.redis.smembers(tag))
        if not members:
            return 0

        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(*members)
            pipe.srem(tag, *members)
            await pipe.execute()

        logger.debug("Invalidated %d goal pages for user %s", len(members), user_id)
        return len(members)
