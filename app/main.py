# app/main.py
"""
FastAPI application: queue monitor and tag sync API with lifecycle
management for the job store pool, the AI service client and the
reconciler.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.db.pool import db_pool
from app.features.processing_queue.api.router import router as queue_router
from app.features.processing_queue.services.batch_controller import BatchCursorController
from app.features.processing_queue.services.monitor import build_reconciler
from app.features.tag_sync.api.router import router as tag_sync_router
from app.features.tag_sync.services.tag_sync_service import TagSyncService
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.routes import health
from app.services.ai_client import AIServiceClient

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        queues=settings.tracked_queues(),
    )

    startup_tasks = []
    ai_client = AIServiceClient()

    try:
        # Job store pool first; table-backed queues read through it
        if settings.job_store_enabled():
            logger.info("Initializing database pool")
            await db_pool.initialize()
            startup_tasks.append("database_pool")

        reconciler = build_reconciler(ai_client)
        await reconciler.start()
        startup_tasks.append("queue_monitor")

        app.state.ai_client = ai_client
        app.state.reconciler = reconciler
        app.state.batch_controller = BatchCursorController(ai_client)
        app.state.tag_sync_service = TagSyncService(ai_client)

        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        if "database_pool" in startup_tasks:
            try:
                await db_pool.close()
            except Exception as cleanup_error:
                logger.error("Error cleaning up database pool", error=str(cleanup_error))
        await ai_client.close()
        raise

    yield

    # Shutdown sequence (reverse order)
    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        logger.info("Stopping queue monitor")
        await app.state.reconciler.stop()
    except Exception as e:
        logger.error("Error stopping queue monitor", error=str(e))
        shutdown_errors.append(f"Queue monitor: {e}")

    try:
        await ai_client.close()
    except Exception as e:
        logger.error("Error closing AI client", error=str(e))
        shutdown_errors.append(f"AI client: {e}")

    if db_pool.initialized:
        try:
            logger.info("Closing database pool")
            await db_pool.close()
        except Exception as e:
            logger.error("Error closing database pool", error=str(e))
            shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Photo Queue Monitor",
    description="Processing queue reconciliation and face tag sync for the photo service",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(queue_router)
app.include_router(tag_sync_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
