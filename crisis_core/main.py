"""
Roger Crisis Core API

Evaluates each chat turn for crisis signals before any conversational
reply is generated. Run with:

    uvicorn crisis_core.main:app --reload
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crisis_core.api.routes import health, turn
from crisis_core.config import settings
from crisis_core.infra.database import close_db, init_db
from crisis_core.infra.redis import RedisClient
from crisis_core.safety.patterns import RULESET_VERSION
from crisis_core.safety.pipeline import get_crisis_pipeline

logger = logging.getLogger(__name__)

_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite")


def setup_logging() -> None:
    """Root logging for the service; crisis records log under crisis_core.safety."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


async def _startup() -> None:
    logger.info(
        f"Starting {settings.app_name} ({settings.app_env}) with crisis ruleset {RULESET_VERSION}"
    )
    health.set_start_time()

    try:
        await init_db()
    except Exception as e:
        # Readiness stays 503 until the event log is reachable
        logger.error(f"Crisis event log unavailable at startup: {e}")
    else:
        logger.info("Crisis event log ready")

    if await RedisClient.get_client() is None:
        logger.warning("Session state will be kept in process memory")

    if not settings.notifications_configured:
        logger.warning("Email provider not configured; clinician alerts fall back to mail drafts")


async def _shutdown() -> None:
    logger.info("Shutting down")

    # Dispatches in flight still need the event log and the email client
    await get_crisis_pipeline().close()
    await RedisClient.close()
    await close_db()

    logger.info("Shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    await _startup()
    yield
    await _shutdown()


app = FastAPI(
    title="Roger Crisis Core API",
    description="""
    Crisis detection and response for a peer-support chat assistant.

    ## Features
    - Lexical crisis classification with priority arbitration
    - Escalation-aware responses with location-specific resources
    - Durable crisis event log with clinician notification
    - Callback-number collection after a confirmed crisis

    This service is a supplementary safety layer, not a replacement
    for professional crisis intervention.
    """,
    version=health.VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Field errors only; the rejected message body is never echoed to the log
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    logger.warning(f"Rejected {request.method} {request.url.path}: invalid {', '.join(fields)}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "detail": [{"loc": err.get("loc"), "msg": err.get("msg")} for err in exc.errors()],
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.is_development else "Internal server error",
        },
    )


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Debug-level request timing."""
    started = time.perf_counter()
    try:
        return await call_next(request)
    finally:
        if settings.debug:
            logger.debug(
                f"{request.method} {request.url.path} took {(time.perf_counter() - started) * 1000:.1f}ms"
            )


app.include_router(health.router)
app.include_router(turn.router)


@app.get("/", tags=["Root"])
async def root() -> dict:
    return {
        "name": settings.app_name,
        "version": health.VERSION,
        "ruleset_version": RULESET_VERSION,
        "environment": settings.app_env,
        "docs": "/docs" if settings.is_development else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "crisis_core.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
