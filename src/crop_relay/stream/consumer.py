"""
Frame Consumer
===============

WebSocket client for consuming (image, camera info) frames from the
camera source.

This module provides the FrameConsumer class which:
    - Connects to the camera source's WebSocket endpoint
    - Receives and validates frame messages
    - Decodes images into Frames
    - Handles reconnection with a fixed backoff
    - Hands each Frame to a delivery callback

Design Rules:
    - start()/stop() are the subscribe/unsubscribe control; both are
      synchronous and idempotent
    - No frame is delivered after stop() returns
    - Does NOT buffer frames; the callback runs once per arrival
    - Logs parse/decode errors but continues processing
"""

import asyncio
import logging
from typing import Callable, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    ConnectionClosedError,
)

from crop_relay.models.wire import FrameMessage
from crop_relay.stream.frame import Frame
from crop_relay.stream.image_codec import ImageDecodeError, decode_frame_message


logger = logging.getLogger(__name__)


class FrameConsumerMetrics:
    """Metrics for FrameConsumer observability."""

    __slots__ = (
        "frames_received",
        "reconnect_count",
        "subscribe_count",
        "last_frame_id",
        "last_timestamp",
        "parse_errors",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.reconnect_count: int = 0
        self.subscribe_count: int = 0
        self.last_frame_id: int = -1
        self.last_timestamp: float = 0.0
        self.parse_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_received": self.frames_received,
            "reconnect_count": self.reconnect_count,
            "subscribe_count": self.subscribe_count,
            "last_frame_id": self.last_frame_id,
            "last_timestamp": self.last_timestamp,
            "parse_errors": self.parse_errors,
        }


class FrameConsumer:
    """
    WebSocket consumer for camera source frames.

    Attributes:
        url: WebSocket URL to connect to
        on_frame: Callback invoked with every decoded Frame
        on_stopped: Callback invoked when reconnects are exhausted
        connected: Whether currently connected
        metrics: Operational metrics

    Example:
        consumer = FrameConsumer(
            url="ws://localhost:8000/ws/camera",
            on_frame=controller.on_frame_arrived,
        )

        # Inside a running event loop
        consumer.start()
        ...
        consumer.stop()
    """

    def __init__(
        self,
        url: str,
        on_frame: Callable[[Frame], None],
        queue_size: int = 5,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
        on_stopped: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize frame consumer.

        Args:
            url: WebSocket URL of the camera source
            on_frame: Callback for decoded frames
            queue_size: Inbound message queue depth of the connection
            reconnect_backoff_ms: Backoff between reconnect attempts
            max_reconnect_attempts: Max attempts (0 = unlimited)
            on_stopped: Called when the consumer gives up after exhausting
                its reconnect budget
        """
        self.url = url
        self.on_frame = on_frame
        self.queue_size = queue_size
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts
        self.on_stopped = on_stopped

        # State
        self._connected: bool = False
        self._running: bool = False
        self._task: Optional[asyncio.Task] = None

        # Metrics
        self.metrics = FrameConsumerMetrics()

    @property
    def connected(self) -> bool:
        """Whether currently connected to the camera source."""
        return self._connected

    def start(self) -> None:
        """
        Begin consuming frames in a background task.

        Must be called from within a running event loop. Calling start()
        while already started is a no-op.
        """
        if self._running:
            return

        self._running = True
        self.metrics.subscribe_count += 1
        self._task = asyncio.get_running_loop().create_task(
            self.run(),
            name="frame_consumer",
        )

    def stop(self) -> None:
        """
        Stop consuming frames.

        Cancels the background task; the connection is closed as the task
        unwinds. Calling stop() while stopped is a no-op.
        """
        if not self._running:
            return

        logger.info("FrameConsumer stopping...")
        self._running = False
        if self._task is not None:
            self._task.cancel()
        self._connected = False

    async def shutdown(self) -> None:
        """Stop and wait for the background task to finish."""
        task = self._task
        self.stop()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run(self) -> None:
        """
        Consume frames until stopped.

        Reconnects on disconnect until stop() is called or the reconnect
        budget is exhausted. Exhausting the budget calls on_stopped.
        """
        logger.info(f"FrameConsumer starting, connecting to {self.url}")
        reconnects = 0
        gave_up = False

        while self._running:
            try:
                await self._connect_and_consume()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Connection error: {e}")
            finally:
                # A cancelled task may unwind after start() began a new one
                if self._task is asyncio.current_task():
                    self._connected = False

            if not self._running:
                break

            if self.max_reconnect_attempts > 0 and reconnects >= self.max_reconnect_attempts:
                logger.error(
                    f"Max reconnect attempts ({self.max_reconnect_attempts}) exceeded"
                )
                self._running = False
                gave_up = True
                break

            reconnects += 1
            self.metrics.reconnect_count += 1
            backoff_sec = self.reconnect_backoff_ms / 1000.0
            logger.info(
                f"Reconnecting in {backoff_sec:.1f}s (attempt {reconnects})"
            )

            try:
                await asyncio.sleep(backoff_sec)
            except asyncio.CancelledError:
                break

        logger.info("FrameConsumer stopped")

        if gave_up and self.on_stopped is not None:
            self.on_stopped()

    async def _connect_and_consume(self) -> None:
        """Connect to the source and deliver messages until disconnect."""
        async with websockets.connect(
            self.url,
            max_queue=self.queue_size,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
        ) as ws:
            self._connected = True
            logger.info(f"Connected to camera source: {self.url}")

            try:
                async for message in ws:
                    if not self._running:
                        break
                    self.handle_message(message)

            except ConnectionClosedOK:
                logger.info("Connection closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"Connection closed with error: {e}")
                raise
            except ConnectionClosed as e:
                logger.warning(f"Connection closed: {e}")
                raise

    def handle_message(self, raw) -> Optional[Frame]:
        """
        Parse one raw message and deliver the resulting frame.

        Messages arriving while stopped are discarded.

        Args:
            raw: Raw JSON text (or bytes) from the WebSocket

        Returns:
            The delivered Frame, or None if the message was discarded
        """
        if not self._running:
            return None

        frame = self._parse(raw)
        if frame is None:
            return None

        self.metrics.frames_received += 1
        self.metrics.last_frame_id = frame.frame_id
        self.metrics.last_timestamp = frame.timestamp

        self.on_frame(frame)
        return frame

    def _parse(self, raw) -> Optional[Frame]:
        """Validate and decode a raw message, or None on error."""
        try:
            message = FrameMessage.model_validate_json(raw)
        except ValidationError as e:
            self.metrics.parse_errors += 1
            logger.error(f"Invalid frame message: {e.error_count()} validation error(s)")
            return None

        try:
            return decode_frame_message(message)
        except ImageDecodeError as e:
            self.metrics.parse_errors += 1
            logger.error(f"Failed to decode frame: {e}")
            return None
