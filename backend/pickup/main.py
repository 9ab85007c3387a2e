"""
Pickup Games API - Main Application Entry Point

Real-time pickup game coordination:
- Concurrency-safe rosters (a game never goes over max_players) via optimistic locking
- Game lifecycle: waiting -> confirmed -> completed | cancelled, plus a stale-game sweep
- Live updates over WebSockets, fanned out through Redis pub/sub
- Push notifications through a queue drained in batches to Expo
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pickup.core.config import get_settings
from pickup.core.logging import setup_logging, get_logger
from pickup.core.metrics import metrics_endpoint
from pickup.api.router import api_router
from pickup.api.middleware import RequestLoggingMiddleware
from pickup.infrastructure.redis_client import get_redis, close_redis
from pickup.services.background import notification_worker_job, stale_sweep_job
from pickup.services.cache_service import get_cache_stats
from pickup.services.notifier import ChangeNotifier, set_change_notifier
from pickup.services.provider_factory import close_push_provider

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    # Initialize Redis connection
    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache or cross-worker live updates")

    notifier = ChangeNotifier(redis_client, channel_prefix=settings.CHANGE_FEED_PREFIX)
    await notifier.start()
    set_change_notifier(notifier)

    jobs = []
    if settings.STALE_SWEEP_INTERVAL_SECONDS > 0:
        jobs.append(stale_sweep_job(settings.STALE_SWEEP_INTERVAL_SECONDS))
    if settings.NOTIFICATION_WORKER_INTERVAL_SECONDS > 0:
        jobs.append(notification_worker_job(settings.NOTIFICATION_WORKER_INTERVAL_SECONDS))
    for job in jobs:
        job.start()

    yield

    # Cleanup
    for job in jobs:
        await job.stop()
    await notifier.stop()
    set_change_notifier(None)
    await close_push_provider()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Pickup game coordination API with concurrency-safe rosters and live updates",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
