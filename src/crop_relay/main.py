"""
Crop Relay Main Application
===========================

FastAPI entry point for the demand-driven crop/decimate relay.

The relay subscribes to the camera source only while at least one
consumer is connected to /ws/image, and republishes cropped/decimated
frames according to the most recent downsample request.

Endpoints:
    GET  /            - Service information
    GET  /health      - Liveness probe (is process alive?)
    GET  /ready       - Readiness probe (components initialized?)
    GET  /metrics     - Controller, source and output counters
    GET  /request     - Currently active request
    POST /request     - Submit a downsample request
    WS   /ws/request  - Request channel (one JSON request per message)
    WS   /ws/image    - Output stream (one JSON frame per message)
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from crop_relay.config import settings
from crop_relay.models.request import DownsampleRequest
from crop_relay.relay import ActiveRequest, RelayController, SubscriptionGate
from crop_relay.stream import FrameConsumer, Outbox, OutputPublisher


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

# Shutdown flag
_shutdown_flag: bool = False

_publisher: Optional[OutputPublisher] = None
_controller: Optional[RelayController] = None
_frame_consumer: Optional[FrameConsumer] = None
_gate: Optional[SubscriptionGate] = None

_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_controller() -> Optional[RelayController]:
    return _controller

def get_publisher() -> Optional[OutputPublisher]:
    return _publisher

def get_frame_consumer() -> Optional[FrameConsumer]:
    return _frame_consumer

def get_gate() -> Optional[SubscriptionGate]:
    return _gate


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _shutdown_flag, _publisher, _controller, _frame_consumer, _gate
    global _startup_time

    # Startup
    _shutdown_flag = False
    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")
    logger.info(f"Camera source: {settings.stream.url}")

    _publisher = OutputPublisher(
        image_format=settings.output.image_format,
        jpeg_quality=settings.output.jpeg_quality,
        queue_size=settings.output.queue_size,
    )
    _controller = RelayController(
        publisher=_publisher,
        max_publish_frequency=settings.relay.max_publish_frequency,
    )
    _frame_consumer = FrameConsumer(
        url=settings.stream.url,
        on_frame=_controller.on_frame_arrived,
        queue_size=settings.stream.queue_size,
        reconnect_backoff_ms=settings.stream.reconnect_backoff_ms,
        max_reconnect_attempts=settings.stream.max_reconnect_attempts,
    )
    _gate = SubscriptionGate(
        open_fn=_frame_consumer.start,
        close_fn=_frame_consumer.stop,
    )
    _frame_consumer.on_stopped = _gate.on_subscription_lost
    _publisher.on_consumer_count = _gate.on_consumer_count_changed

    logger.info(
        f"Relay ready: max_publish_frequency={settings.relay.max_publish_frequency} Hz, "
        f"output={settings.output.image_format}"
    )

    yield

    # Shutdown
    logger.info("Shutting down...")
    _shutdown_flag = True

    _controller.shutdown()
    _gate.close()
    await _frame_consumer.shutdown()

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Crop Relay",
    description="Demand-driven crop/decimate image relay",
    version=settings.service.version,
    lifespan=lifespan,
)


def _request_payload(active: ActiveRequest) -> dict:
    scheduler = _controller.scheduler if _controller else None
    return {
        "generation": active.generation,
        "mode": active.mode.value,
        "mode_recognized": active.request.mode_recognized,
        "request": active.request.model_dump(mode="json"),
        "effective_frequency": scheduler.frequency if scheduler else None,
    }


def _rejects_mode(request: DownsampleRequest) -> bool:
    return settings.relay.strict_modes and not request.mode_recognized


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "CropRelay",
        "version": settings.service.version,
        "name": settings.service.name,
        "status": "running",
        "max_publish_frequency": settings.relay.max_publish_frequency,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the service ready to handle requests?

    Returns 200 once the relay components are initialized, 503 otherwise.
    """
    controller = get_controller()
    gate = get_gate()

    if controller is None or gate is None or _shutdown_flag:
        return JSONResponse({"status": "not_ready"}, status_code=503)

    return JSONResponse({
        "status": "ready",
        "subscribed": gate.is_open,
        "frame_cached": controller.frame_cache.has_frame,
        "request_active": controller.request_state.current() is not None,
    })


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    controller = get_controller()
    consumer = get_frame_consumer()
    publisher = get_publisher()
    gate = get_gate()

    relay_metrics = {}
    if controller:
        relay_metrics = {
            **controller.metrics.to_dict(),
            "timers_armed": controller.scheduler.timers_armed,
            "timer_active": controller.scheduler.active,
            "request_generation": controller.request_state.generation,
        }

    stream_metrics = {}
    if consumer and gate:
        stream_metrics = {
            "subscribed": gate.is_open,
            "stream_connected": consumer.connected,
            "source": consumer.metrics.to_dict(),
        }

    output_metrics = {}
    if publisher:
        output_metrics = {"output": publisher.metrics()}

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        **relay_metrics,
        **stream_metrics,
        **output_metrics,
    })


@app.get("/request")
async def current_request() -> JSONResponse:
    """Get the currently active request."""
    controller = get_controller()
    active = controller.request_state.current() if controller else None

    if active is None:
        return JSONResponse(
            {"error": "No request received yet"},
            status_code=404,
        )

    return JSONResponse(_request_payload(active))


@app.post("/request")
async def submit_request(request: DownsampleRequest) -> JSONResponse:
    """Submit a downsample request; it replaces the active one."""
    controller = get_controller()
    if controller is None:
        return JSONResponse({"error": "Relay not initialized"}, status_code=503)

    if _rejects_mode(request):
        return JSONResponse(
            {"error": f"Unrecognized mode: {request.mode}"},
            status_code=422,
        )

    active = controller.on_request_arrived(request)
    return JSONResponse(
        {"status": "accepted", **_request_payload(active)},
        status_code=202,
    )


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/request")
async def request_channel(websocket: WebSocket) -> None:
    """WebSocket request channel; every text message is one request."""
    await websocket.accept()
    logger.info("Client connected to /ws/request")

    try:
        while not _shutdown_flag:
            raw = await websocket.receive_text()

            try:
                request = DownsampleRequest.model_validate_json(raw)
            except ValidationError as e:
                logger.warning(f"Invalid request message: {e.error_count()} validation error(s)")
                await websocket.send_json({"status": "rejected", "error": "invalid request"})
                continue

            if _rejects_mode(request):
                await websocket.send_json(
                    {"status": "rejected", "error": f"Unrecognized mode: {request.mode}"}
                )
                continue

            active = _controller.on_request_arrived(request)
            await websocket.send_json({"status": "accepted", **_request_payload(active)})

    except WebSocketDisconnect:
        pass
    finally:
        logger.info("Client disconnected from /ws/request")


async def _send_frames(websocket: WebSocket, outbox: Outbox) -> None:
    while not _shutdown_flag:
        payload = await outbox.get(timeout=1.0)
        if payload is not None:
            await websocket.send_text(payload)


async def _wait_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@app.websocket("/ws/image")
async def image_stream(websocket: WebSocket) -> None:
    """
    WebSocket output stream.

    Each connection counts as one consumer; the camera subscription stays
    open while at least one is connected. The consumer is attached before
    the handshake completes.
    """
    outbox = _publisher.attach()

    try:
        await websocket.accept()
        logger.info("Client connected to /ws/image")

        sender = asyncio.create_task(_send_frames(websocket, outbox))
        watcher = asyncio.create_task(_wait_disconnect(websocket))

        try:
            done, _ = await asyncio.wait(
                {sender, watcher},
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in done:
                error = task.exception()
                if error is not None and not isinstance(error, WebSocketDisconnect):
                    logger.warning(f"WebSocket error: {error}")
        finally:
            sender.cancel()
            watcher.cancel()
    finally:
        _publisher.detach(outbox)
        logger.info("Client disconnected from /ws/image")


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    """Run the relay under uvicorn."""
    import uvicorn

    uvicorn.run(
        "crop_relay.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
