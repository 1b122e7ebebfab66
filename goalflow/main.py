import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from goalflow.cache.layer import GoalsCache, create_redis
from goalflow.core.config import get_settings
from goalflow.database import async_session, engine
from goalflow.events import ProgressBroadcaster
from goalflow.reminders.scheduler import ReminderScheduler
from goalflow.routers import goals, progress, reminders

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # one Redis handle for the whole process, closed on shutdown
    cache = GoalsCache(create_redis(settings), settings)
    if cache.enabled and not await cache.ping():
        logger.warning("Redis unreachable at startup; serving without cache")
    app.state.goals_cache = cache
    app.state.progress_broadcaster = ProgressBroadcaster()

    scheduler_task = None
    if settings.reminder_scheduler_enabled:
        scheduler = ReminderScheduler(
            async_session, batch_size=settings.reminder_batch_size
        )
        scheduler_task = asyncio.create_task(
            scheduler.run_forever(settings.reminder_tick_seconds)
        )

    yield

    if scheduler_task:
        scheduler_task.cancel()
        with suppress(asyncio.CancelledError):
            await scheduler_task
    await cache.close()
    await engine.dispose()


app = FastAPI(
    title="GoalFlow API",
    description="SMART goals, progress logs and reminders with cached goal lists",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(goals.router)
app.include_router(progress.router)
app.include_router(reminders.router)


@app.get("/")
async def root():
    return {
        "message": "Welcome to GoalFlow API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    cache = getattr(app.state, "goals_cache", None)
    return {
        "status": "healthy",
        "cache": cache.get_stats() if cache else None,
    }
