"""
Stream Session Service
======================

FastAPI entry point exposing one stream session over HTTP.

The session connects to the configured control endpoint on startup and
keeps its "current frame + status" surface available to pollers and to
a status WebSocket.

Endpoints:
    GET  /                   - Service information
    GET  /health             - Liveness probe (is process alive?)
    GET  /ready              - Readiness probe (control channel connected?)
    GET  /status             - Display status, diagnostics, undistortion state
    GET  /metrics            - Session counters
    GET  /frame              - Current image as JPEG (404 while a status shows)
    POST /auxiliary/toggle   - Request an undistortion toggle
    WS   /ws/status          - Real-time status stream
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response

from stream_session.config import settings, setup_logging
from stream_session.errors import ImageDecodeError
from stream_session.models.status import SessionState
from stream_session.session import StreamSession
from stream_session.stream.image_decoder import encode_jpeg


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_session: Optional[StreamSession] = None
_startup_time: float = 0.0


def get_session() -> Optional[StreamSession]:
    return _session


def create_session() -> StreamSession:
    """Build a session from the loaded settings."""
    cfg = settings.session
    return StreamSession(
        config=cfg.to_stream_configuration(),
        liveness_interval_ms=cfg.liveness_interval_ms,
        debug_mode=cfg.debug_mode,
        host_edit_mode=cfg.host_edit_mode,
        decode_failure_refreshes_freeze=cfg.decode_failure_refreshes_freeze,
    )


def status_payload(session: StreamSession) -> dict:
    """JSON-ready snapshot of the session's displayable state."""
    output = session.current_displayable()
    auxiliary = session.auxiliary_state()
    label = session.stream_label
    return {
        "connection_state": session.connection_state().value,
        "display_status": output.status.value,
        "status_text": output.status_text,
        "has_image": output.has_image,
        "image_received_at_ms": output.received_at_ms,
        "debug_mode": session.debug_mode,
        "diagnostics": session.diagnostics().to_dict(),
        "undistortion": {
            "available": auxiliary.available,
            "enabled": auxiliary.enabled,
            "mode": auxiliary.mode,
        },
        "stream_label": {"name": label.name, "corner": label.corner.name},
    }


# =============================================================================
# Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the session on startup, stop it on shutdown."""
    global _session, _startup_time

    setup_logging(settings)
    _startup_time = time.time()
    logger.info(f"Starting {settings.app.name} {settings.app.version}")
    logger.info(
        f"Control endpoint: {settings.session.control_endpoint or '<unset>'}, "
        f"transport: {settings.session.transport.value}"
    )

    _session = create_session()
    _session.start()

    yield

    logger.info("Shutting down gracefully...")
    if _session is not None:
        await _session.stop()
    _session = None
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="StreamSessionClient",
    description="Live frame stream client with latency and freeze policy",
    version=settings.app.version,
    lifespan=lifespan,
)


def _not_running() -> JSONResponse:
    return JSONResponse({"error": "Session not running"}, status_code=503)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "StreamSessionClient",
        "version": settings.app.version,
        "name": settings.app.name,
        "status": "running",
        "transport": settings.session.transport.value,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe - always 200 while the process runs."""
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe.

    Returns 200 when the control channel is connected, 503 otherwise.
    """
    session = get_session()
    if session is None:
        return _not_running()

    state = session.connection_state()
    body = {
        "status": "ready" if state is SessionState.CONNECTED else "not_ready",
        "connection_state": state.value,
        "display_status": session.current_displayable().status.value,
    }
    if state is SessionState.CONNECTED:
        return JSONResponse(body)
    return JSONResponse(body, status_code=503)


@app.get("/status")
async def status() -> JSONResponse:
    """Current display status and diagnostics."""
    session = get_session()
    if session is None:
        return _not_running()
    return JSONResponse(status_payload(session))


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    session = get_session()
    if session is None:
        return _not_running()
    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "connection_state": session.connection_state().value,
        "display_status": session.current_displayable().status.value,
        "last_delay_ms": session.last_delay_ms(),
        **session.metrics.to_dict(),
    })


@app.get("/frame")
async def frame() -> Response:
    """Current image as JPEG; 404 with the status text while no image is active."""
    session = get_session()
    if session is None:
        return _not_running()

    output = session.current_displayable()
    if output.image is None:
        return JSONResponse(
            {"status": output.status.value, "status_text": output.status_text},
            status_code=404,
        )

    try:
        content = encode_jpeg(output.image)
    except ImageDecodeError as e:
        logger.error(f"Frame re-encode failed: {e}")
        return JSONResponse({"error": str(e)}, status_code=500)

    headers = {}
    if output.received_at_ms is not None:
        headers["X-Frame-Received-At-Ms"] = str(output.received_at_ms)
    return Response(content=content, media_type="image/jpeg", headers=headers)


@app.post("/auxiliary/toggle")
async def toggle_auxiliary() -> JSONResponse:
    """Request an undistortion toggle; the new state arrives asynchronously."""
    session = get_session()
    if session is None:
        return _not_running()

    sent = session.toggle_auxiliary_feature()
    return JSONResponse(
        {"sent": sent, "undistortion_available": session.auxiliary_state().available},
        status_code=202 if sent else 409,
    )


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/status")
async def status_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time status."""
    await websocket.accept()
    logger.info("Client connected to /ws/status")

    try:
        while True:
            session = get_session()
            if session is not None:
                await websocket.send_json(status_payload(session))
            await asyncio.sleep(1.0)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected from /ws/status")


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "stream_session.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
