"""
signstream Control API
======================

FastAPI entry point hosting one PracticeClient against the local camera.

Endpoints:
    GET  /               - Service information
    GET  /health         - Liveness probe
    GET  /status         - Connection state, last error, session and score
    GET  /predictions    - Recent incremental predictions (most recent first)
    GET  /results        - Recent final results (most recent first)
    GET  /stats          - Session score counters
    POST /connect        - Open the stream connection
    POST /disconnect     - Close it (suppresses auto-reconnect)
    POST /session/start  - Start a capture burst {"target_label": "Hello"}
    POST /session/stop   - Stop the burst (requests final result)
    POST /model          - Request a model switch {"model": "pro"}
    POST /stats/reset    - Reset session score
    WS   /ws/status      - Status snapshot pushed every second
"""

import asyncio
import logging
import os
import signal
import threading
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from signstream.config import settings
from signstream.errors import NotConnectedError
from signstream.practice import PracticeClient
from signstream.stream import CameraSource


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_shutdown_flag: bool = False
_client: Optional[PracticeClient] = None
_camera: Optional[CameraSource] = None
_startup_time: float = 0.0


def get_client() -> Optional[PracticeClient]:
    return _client


# =============================================================================
# Signal Handlers
# =============================================================================

def _handle_sigterm(signum, frame):
    """Handle SIGTERM for graceful shutdown."""
    global _shutdown_flag
    logger.info("Received SIGTERM, initiating graceful shutdown...")
    _shutdown_flag = True


# =============================================================================
# Client Factory
# =============================================================================

def create_camera() -> CameraSource:
    """Camera source from the capture settings."""
    device = settings.capture.stream_url or settings.capture.camera_index
    return CameraSource(device)


def create_practice_client(camera: CameraSource) -> PracticeClient:
    """PracticeClient for the configured mode and model."""
    client = PracticeClient.from_settings(settings, camera)
    logger.info(
        f"PracticeClient created: mode={client.mode}, endpoint={client.endpoint}, "
        f"model={client.selector.active_variant}"
    )
    return client


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _client, _camera, _startup_time, _shutdown_flag

    # Signal handlers can only be installed from the main thread
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, _handle_sigterm)

    _startup_time = time.time()
    _shutdown_flag = False
    logger.info(f"Starting {settings.client.name} {settings.client.version}")

    _camera = create_camera()
    _client = create_practice_client(_camera)

    yield

    logger.info("Shutting down gracefully...")
    _shutdown_flag = True

    if _client:
        await _client.close()
    if _camera:
        _camera.release()

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="signstream",
    description="Real-time sign-recognition streaming client",
    version=settings.client.version,
    lifespan=lifespan,
)


class StartRequest(BaseModel):
    target_label: Optional[str] = Field(default=None, description="Label to score against")


class ModelRequest(BaseModel):
    model: str = Field(..., min_length=1, description="Model variant")


def _unavailable() -> JSONResponse:
    return JSONResponse({"error": "Client not initialized"}, status_code=503)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    client = get_client()
    return JSONResponse({
        "service": "signstream",
        "version": settings.client.version,
        "name": settings.client.name,
        "status": "running",
        "mode": client.mode if client else settings.practice.mode,
        "endpoint": client.endpoint if client else None,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe - always 200 while the process is up."""
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/status")
async def status() -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    return JSONResponse(client.status().model_dump(mode="json"))


@app.get("/predictions")
async def predictions() -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    return JSONResponse([p.model_dump(mode="json") for p in client.correlator.history])


@app.get("/results")
async def results() -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    return JSONResponse([r.model_dump(mode="json") for r in client.results])


@app.get("/stats")
async def stats() -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    current = client.stats
    return JSONResponse({**current.model_dump(mode="json"), "accuracy": current.accuracy})


@app.post("/connect")
async def connect() -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    await client.connect()
    return JSONResponse({
        "connection_state": client.state.value,
        "last_error": client.last_error,
    })


@app.post("/disconnect")
async def disconnect() -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    await client.disconnect()
    return JSONResponse({"connection_state": client.state.value})


@app.post("/session/start")
async def start_session(request: StartRequest) -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    try:
        await client.start(request.target_label)
    except NotConnectedError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return JSONResponse({
        "is_live": client.session.is_live,
        "target_label": client.session.target_label,
    })


@app.post("/session/stop")
async def stop_session() -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    await client.stop()
    return JSONResponse({
        "is_live": client.session.is_live,
        "frames_sent": client.session.frames_sent,
    })


@app.post("/model")
async def switch_model(request: ModelRequest) -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    sent = await client.switch_model(request.model)
    if not sent:
        return JSONResponse(
            {"error": "Not connected", "active_model": client.selector.active_variant},
            status_code=409,
        )
    return JSONResponse(
        {"requested": request.model, "active_model": client.selector.active_variant},
        status_code=202,
    )


@app.post("/stats/reset")
async def reset_stats() -> JSONResponse:
    client = get_client()
    if client is None:
        return _unavailable()
    client.reset_stats()
    return JSONResponse(client.stats.model_dump(mode="json"))


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/status")
async def status_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint pushing status snapshots."""
    await websocket.accept()
    logger.info("Client connected to /ws/status")

    try:
        while not _shutdown_flag:
            client = get_client()
            if client:
                await websocket.send_json(client.status().model_dump(mode="json"))
            # Waiting on receive surfaces the peer's close as WebSocketDisconnect
            try:
                await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=settings.api.status_push_interval_seconds,
                )
            except asyncio.TimeoutError:
                pass

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected from /ws/status")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.api.port))

    uvicorn.run(
        "signstream.main:app",
        host=settings.api.host,
        port=port,
        reload=False,
    )
