# tagask/main.py
"""
FastAPI application: lifespan management, middleware and routers.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from tagask.config import settings
from tagask.dependencies import close_summarization_bridge
from tagask.infrastructure.observability.logging import get_logger, log_request, setup_logging
from tagask.middleware.request_context import RequestContextMiddleware
from tagask.routes import health, leaderboard, questions, summaries, tags
from tagask.services.graph.client import graph_directory_service
from tagask.services.redis_client import fast_redis

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open storage before serving; close every outbound client on the way out."""
    use_redis = settings.STORAGE_BACKEND.lower() == "redis"
    logger.info(
        "Tag Ask starting",
        environment=settings.environment,
        storage_backend=settings.STORAGE_BACKEND,
        summarizer_backend=settings.SUMMARIZER_BACKEND,
    )

    if use_redis:
        # Fail startup rather than serve with an unreachable ledger
        await fast_redis.initialize()
    else:
        settings.ledger_path().parent.mkdir(parents=True, exist_ok=True)
        logger.info("Using JSON file storage", data_dir=settings.DATA_DIR)

    yield

    closers = [
        ("graph", graph_directory_service.close),
        ("summarizer", close_summarization_bridge),
    ]
    if use_redis:
        closers.append(("redis", fast_redis.close))

    failed = []
    for name, close in closers:
        try:
            await close()
        except Exception as e:
            logger.error("Shutdown step failed", client=name, error=str(e))
            failed.append(name)

    logger.info("Tag Ask stopped", failed_closers=failed)


app = FastAPI(
    title="Tag Ask",
    description="Ask questions of the people behind Microsoft Teams tags",
    version="0.1.0",
    lifespan=lifespan,
)

for router_module in (health, questions, leaderboard, summaries, tags):
    app.include_router(router_module.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Time each request and log it once the response is ready."""
    started = time.perf_counter()
    response = await call_next(request)
    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return response


# Outermost: request_id is bound before the timing log runs
app.add_middleware(RequestContextMiddleware)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
