import logging
from functools import wraps
from typing import Any, Callable
from uuid import UUID

logger = logging.getLogger(__name__)


def invalidates_goal_pages(user_id_of: Callable[..., UUID]):
    """
    Decorator for service methods that change a user's goal set.

    The wrapped method must commit before returning a ``Result``; only after
    a successful result are the user's cached pages dropped, so a concurrent
    reader cannot repopulate the cache with pre-write data after the purge.
    The owning service exposes its ``GoalsCache`` as ``self.cache``.

    Example:
      @invalidates_goal_pages(lambda user_id, *_, **__: user_id)
      async def delete_goal(self, user_id, goal_id): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args: Any, **kwargs: Any):
            result = await fn(self, *args, **kwargs)
            if result.is_success:
                user_id = user_id_of(*args, **kwargs)
                removed = await self.cache.invalidate_user(user_id)
                logger.debug(
                    "%s invalidated %d cached pages for user %s",
                    fn.__name__,
                    removed,
                    user_id,
                )
            return result

        return wrapper

    return decorator
