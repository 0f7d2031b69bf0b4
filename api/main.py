from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from airey.config import API_VERSION, METRICS_ENABLED, validate_config
from airey.logging import get_logger, setup_logging
from airey.persistence import close_persistence, init_persistence, redis_status
from api.middleware import RateLimitMiddleware, RequestIDMiddleware, get_allowed_origins
from api.routes import router
from api.stores import get_bridge, get_coordinator, get_store

setup_logging()
logger = get_logger("airey_bridge", service_version=API_VERSION)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("AIREY recommendation bridge starting up")
    for warning in validate_config():
        logger.warning("config warning", detail=warning)

    await init_persistence()
    restored = await get_store().restore()
    if restored:
        logger.info("Restored bridge state from Redis", records=restored)

    from api.tasks import start_expiry_scheduler, stop_expiry_scheduler
    start_expiry_scheduler()

    yield

    stop_expiry_scheduler()

    persisted = await get_store().persist_all()
    if persisted:
        logger.info("Persisted bridge state to Redis", records=persisted)

    await close_persistence()
    logger.info("AIREY recommendation bridge shutting down")


app = FastAPI(
    title="AIREY Recommendation Bridge",
    description="Oracle request/fulfillment bridge for off-chain strategy recommendations, "
                "with confidence, freshness and cooldown gating of automatic vault execution.",
    version=API_VERSION,
    lifespan=lifespan,
)

allowed_origins = get_allowed_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["X-API-Key", "Content-Type", "Authorization"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIDMiddleware)

app.include_router(router, prefix="/api/v1")

if METRICS_ENABLED:
    from prometheus_fastapi_instrumentator import Instrumentator

    Instrumentator().instrument(app).expose(app)


@app.get("/health")
def health():
    warnings = validate_config()
    stats = get_coordinator().get_execution_stats()
    return {
        "status": "degraded" if warnings else "ok",
        "service": "airey-bridge",
        "version": API_VERSION,
        "checks": {
            "redis": redis_status(),
            "config": {"ok": not warnings, "warnings": warnings},
            "oracle": {"outstanding_requests": len(get_bridge().outstanding())},
            "execution": {
                "executor": type(get_coordinator().executor).__name__,
                "attempts": stats["total_attempts"],
            },
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)
