"""
Health Check Endpoints

Liveness and readiness checks for the crisis core. Readiness hinges on
the crisis event log: a turn that detects a crisis must be able to
record it. Redis only holds session flags and degrades to memory.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from crisis_core.config import settings
from crisis_core.infra.database import check_db_health
from crisis_core.infra.redis import check_redis_health
from crisis_core.safety.audit_logger import get_event_store
from crisis_core.safety.patterns import RULESET_VERSION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

VERSION = "1.0.0"

_started_monotonic: Optional[float] = None


def set_start_time() -> None:
    """Record process start. Called once from the lifespan."""
    global _started_monotonic
    _started_monotonic = time.monotonic()


def get_uptime_seconds() -> Optional[float]:
    if _started_monotonic is None:
        return None
    return round(time.monotonic() - _started_monotonic, 3)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    ruleset_version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness with per-dependency results."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


class EventLogResponse(BaseModel):
    """Crisis event log state, development only."""
    status: str
    timestamp: datetime
    chain_intact: bool
    chain_error: Optional[str] = None
    summary: dict
    notifications_configured: bool


async def _run_check(name: str, check: Callable[[], Awaitable[bool]], down: str) -> str:
    """Run one dependency check and map it to ok / <down> / error."""
    try:
        if await check():
            return "ok"
        logger.warning(f"Readiness: {name} check returned {down}")
        return down
    except Exception as e:
        logger.error(f"Readiness: {name} check raised {type(e).__name__}: {e}")
        return "error"


@router.get(
    "",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns 200 while the process is serving. Dependencies are not checked.",
)
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        version=VERSION,
        ruleset_version=RULESET_VERSION,
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness check",
    description=(
        "503 when the crisis event log is unavailable. Redis loss is reported "
        "as degraded because session state falls back to memory."
    ),
    responses={
        200: {"description": "Turns can be evaluated and recorded"},
        503: {"description": "Crisis event log is unavailable"},
    },
)
async def ready() -> ReadyResponse:
    checks = {
        "database": await _run_check("crisis event log", check_db_health, "failed"),
        "redis": await _run_check("redis", check_redis_health, "degraded"),
    }
    is_ready = checks["database"] == "ok"

    response = ReadyResponse(
        status="ready" if is_ready else "not_ready",
        timestamp=_now(),
        checks=checks,
    )
    if is_ready:
        return response

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )


@router.get(
    "/live",
    response_model=LiveResponse,
    summary="Liveness check",
)
async def live() -> LiveResponse:
    return LiveResponse(status="alive", timestamp=_now(), uptime_seconds=get_uptime_seconds())


@router.get(
    "/events",
    response_model=EventLogResponse,
    summary="Crisis event log state",
    description="Event counts and hash-chain verification. Only available in development.",
    include_in_schema=settings.is_development,
)
async def events() -> EventLogResponse:
    """
    Summarize the crisis event log and verify its hash chain.

    Counts only; no event content leaves the service through this route.
    """
    if not settings.is_development:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    store = get_event_store()
    intact, chain_error = await store.verify_chain_integrity()
    summary = await store.get_summary()
    if not intact:
        logger.critical(f"Crisis event chain verification failed: {chain_error}")

    return EventLogResponse(
        status="intact" if intact else "tampered",
        timestamp=_now(),
        chain_intact=intact,
        chain_error=chain_error,
        summary=summary.to_dict(),
        notifications_configured=settings.notifications_configured,
    )
