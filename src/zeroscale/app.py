# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
from typing import Any, Callable, Optional

# ─── Third-party imports ───
import pymysql
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

# ─── Project imports ───
from .config import Settings
from .logger import get_logger
from .bootstrap import bootstrap
from .errors import ControlPlaneError
from .control_plane import ControlPlane, control_plane_for
from .deactivation import DeactivationHandler, parse_push_envelope
from .readiness import ProbeOutcome, ReadinessProbe, report


logger = get_logger("app")

router = APIRouter()


def _probe(request: Request) -> Optional[ReadinessProbe]:
    state = request.app.state
    if state.settings is None:
        return None
    return ReadinessProbe(
        state.settings,
        connect=state.connect,
        control_plane_factory=state.control_plane_factory,
    )

def _misconfigured(request: Request) -> PlainTextResponse:
    return _respond(ProbeOutcome.misconfigured(str(request.app.state.config_error)))

def _respond(outcome: ProbeOutcome) -> PlainTextResponse:
    result = report(outcome)
    return PlainTextResponse(result.body, status_code=result.status_code)


@router.get("/startup", response_class=PlainTextResponse)
def startup_probe(request: Request):
    """
    Startup probe: 200 when the database answers, otherwise wake the
    backing resource if needed and answer 503 so the orchestrator retries.
    """
    probe = _probe(request)
    if probe is None:
        return _misconfigured(request)
    return _respond(probe.run())


@router.get("/startup/wait", response_class=PlainTextResponse)
def startup_probe_blocking(request: Request):
    """
    Same contract as /startup, but waits in-request (bounded by
    MAX_WAIT_SECONDS_FOR_STARTUP) for the resource to come up.
    """
    probe = _probe(request)
    if probe is None:
        return _misconfigured(request)
    return _respond(probe.run_blocking())


@router.get("/healthz", response_class=PlainTextResponse)
def health_check(request: Request):
    """
    Warm health check: database only, never touches the control plane.
    """
    probe = _probe(request)
    if probe is None:
        return _misconfigured(request)
    return _respond(probe.check_health())


@router.post("/stop", response_class=PlainTextResponse)
async def stop_signal(request: Request):
    """
    Pub/Sub push endpoint for scale-down signals.

    Any non-2xx answer makes Pub/Sub redeliver, which is what we want for
    control-plane errors (503) and configuration errors (500). Signals that
    can never succeed (malformed, or aimed at another instance) are logged
    and acknowledged with 200 so they are not redelivered until retention.
    """
    state = request.app.state
    if state.settings is None:
        return _misconfigured(request)

    try:
        body = await request.json()
        signal = parse_push_envelope(body)
    except ValueError as e:
        logger.warning(f"Discarding malformed stop signal: {e}")
        return PlainTextResponse(f"Discarded: malformed stop signal ({e})")

    handler = DeactivationHandler(
        state.settings,
        control_plane_factory=state.control_plane_factory,
    )

    try:
        result = await run_in_threadpool(handler.on_stop_signal, signal)
    except ControlPlaneError as e:
        logger.error(f"Stop signal {signal.message_id or 'N/A'} failed: {e}")
        return PlainTextResponse(
            f"Service Unavailable: stop request failed ({e.summary()})",
            status_code=503,
        )

    if not result.acknowledged:
        if result.fatal:
            return PlainTextResponse(f"Critical Error: {result.reason}", status_code=500)
        return PlainTextResponse(f"Discarded: {result.reason}")

    if result.already_satisfied:
        return PlainTextResponse(f"Acknowledged: {result.change} already in effect")
    return PlainTextResponse(
        f"Acknowledged: {result.change} operation {result.operation_id or 'N/A'}"
    )


def create_app(
    settings: Optional[Settings] = None,
    connect: Callable[..., Any] = pymysql.connect,
    control_plane_factory: Callable[..., ControlPlane] = control_plane_for,
) -> FastAPI:
    """Create the probe / scale-down FastAPI application."""
    settings, config_error = bootstrap(settings)

    app = FastAPI(
        title="zeroscale",
        summary="Wake-on-demand startup probe and scale-down handler",
        version="v1",
    )
    app.state.settings = settings
    app.state.config_error = config_error
    app.state.connect = connect
    app.state.control_plane_factory = control_plane_factory

    app.include_router(router, tags=["probes"])
    return app
