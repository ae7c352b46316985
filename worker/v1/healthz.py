import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from worker.config.settings import Settings, SettingsDep
from worker.infra.downstream import DownstreamClient, get_downstream
from worker.v1.core.exceptions import create_success_response
from worker.v1.jobs.dispatcher import Dispatcher, get_dispatcher

router = APIRouter()

_process_started = time.monotonic()


class DownstreamHealth(BaseModel):
    """Downstream service health status."""

    status: str
    reachable: bool
    response_time_ms: float | None = None
    error: str | None = None


class HistoryHealth(BaseModel):
    """Job history usage."""

    size: int
    capacity: int


class HealthResponse(BaseModel):
    """Health response with downstream and history status."""

    ok: bool
    status: str
    version: str
    environment: str
    timestamp: str
    uptime_seconds: float
    downstream: DownstreamHealth
    history: HistoryHealth


@router.get("/health", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep,
    downstream: DownstreamClient = Depends(get_downstream),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Health check endpoint; 503 when the downstream service is unreachable."""

    downstream_health = await _check_downstream_health(downstream)
    overall_ok = downstream_health.status != "unhealthy"

    health = HealthResponse(
        ok=overall_ok,
        status="ok" if overall_ok else "degraded",
        version=settings.version,
        environment=settings.environment,
        timestamp=datetime.now(UTC).isoformat(),
        uptime_seconds=round(time.monotonic() - _process_started, 3),
        downstream=downstream_health,
        history=HistoryHealth(
            size=len(dispatcher.history), capacity=dispatcher.history.capacity
        ),
    )

    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if overall_ok else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content=create_success_response(data=health.model_dump()),
    )


@router.get("/ready", response_model=dict)
async def ready(settings: Settings = SettingsDep):
    """Readiness probe."""
    return create_success_response(
        data={
            "status": "ready",
            "worker": settings.app_name,
            "version": settings.version,
            "subscription": settings.pubsub_subscription,
        }
    )


async def _check_downstream_health(downstream: DownstreamClient) -> DownstreamHealth:
    """Check downstream reachability and response time."""
    start_time = time.perf_counter()

    try:
        body = await downstream.health()
    except Exception as e:
        return DownstreamHealth(
            status="unhealthy", reachable=False, error=str(e) or e.__class__.__name__
        )

    response_time_ms = (time.perf_counter() - start_time) * 1000
    reported = body.get("status") if isinstance(body, dict) else None

    return DownstreamHealth(
        status="healthy" if reported == "ok" else "degraded",
        reachable=True,
        response_time_ms=round(response_time_ms, 2),
    )
