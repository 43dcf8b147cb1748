"""
Relay Controller
================

Request-driven publication of cropped/decimated frames.

The controller ties together the frame cache, the current request, the
publish scheduler and the crop/decimate transform. It reacts to three
kinds of events:

    on_frame_arrived(frame)      - cache the frame; publish in ALL mode
    on_request_arrived(request)  - replace the request; publish now;
                                   arm the timer in PERIODIC mode
    on_timer_tick(generation)    - publish while the arming request is
                                   still current and PERIODIC

All publishing goes through publish_cropped_frame().

Mode Summary:
    ONCE        publish once, no timer, wait for the next request
    PERIODIC    publish once, then on a timer at min(cap, requested) Hz
    ALL         publish once, then on every frame arrival
    ON_ARRIVAL  publish once per request (also used for unknown modes)

Skip Conditions (never raised, only counted):
    - no frame cached yet / no request yet
    - transform reports invalid geometry
    - timer tick from a superseded request
"""

import functools
import logging
import threading
from typing import Optional, Protocol

import numpy as np

from crop_relay.models.camera_info import CameraInfo
from crop_relay.models.request import DownsampleRequest, RequestMode
from crop_relay.relay.request_state import ActiveRequest, RequestState
from crop_relay.relay.scheduler import PublishScheduler, TimerFactory
from crop_relay.stream.cache import FrameCache
from crop_relay.stream.frame import Frame
from crop_relay.transform.crop_decimate import CropDecimate


logger = logging.getLogger(__name__)


class FramePublisher(Protocol):
    """Output side of the relay."""

    def publish(
        self,
        image: np.ndarray,
        camera_info: CameraInfo,
        frame_id: int = 0,
        timestamp: float = 0.0,
    ) -> None:
        ...


class RelayMetrics:
    """Counters for RelayController observability."""

    __slots__ = (
        "frames_received",
        "requests_received",
        "unrecognized_modes",
        "publish_attempts",
        "frames_published",
        "not_ready_skips",
        "transform_failures",
        "stale_ticks",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.requests_received: int = 0
        self.unrecognized_modes: int = 0
        self.publish_attempts: int = 0
        self.frames_published: int = 0
        self.not_ready_skips: int = 0
        self.transform_failures: int = 0
        self.stale_ticks: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class RelayController:
    """
    Orchestrates caching, request handling, scheduling and publishing.

    Attributes:
        frame_cache: Latest source frame
        request_state: Current request (versioned)
        scheduler: Periodic publish timer owner
        metrics: Operational counters

    Example:
        controller = RelayController(publisher, max_publish_frequency=30.0)

        controller.on_request_arrived(DownsampleRequest(mode="ALL", binning_x=2, binning_y=2))
        controller.on_frame_arrived(frame)   # publishes a decimated copy
    """

    def __init__(
        self,
        publisher: FramePublisher,
        transform: Optional[CropDecimate] = None,
        max_publish_frequency: float = 100.0,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            publisher: Receives successfully transformed frames
            transform: Crop/decimate processor (default: CropDecimate())
            max_publish_frequency: Cap on PERIODIC publish rate (Hz)
            timer_factory: Creates recurring timers (default: asyncio)
        """
        self.publisher = publisher
        self.transform = transform or CropDecimate()

        self.frame_cache = FrameCache()
        self.request_state = RequestState()
        self.scheduler = PublishScheduler(
            max_frequency=max_publish_frequency,
            timer_factory=timer_factory,
        )
        self.metrics = RelayMetrics()

        # Serializes request replacement with timer re-arming
        self._request_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    def on_frame_arrived(self, frame: Frame) -> None:
        """Cache a source frame and relay it when in ALL mode."""
        self.frame_cache.store(frame)
        self.metrics.frames_received += 1

        active = self.request_state.current()
        if active is None:
            return

        if active.mode is RequestMode.ALL:
            self.publish_cropped_frame()

    def on_request_arrived(self, request: DownsampleRequest) -> ActiveRequest:
        """
        Make request the current one and act on its mode.

        Returns:
            Snapshot of the now-active request
        """
        self.metrics.requests_received += 1
        if not request.mode_recognized:
            self.metrics.unrecognized_modes += 1
            logger.warning(f"Unrecognized request mode '{request.mode}', free-running")

        with self._request_lock:
            active = self.request_state.replace(request)
            self.scheduler.cancel()

        logger.info(
            f"Image requested: mode={active.mode.value} "
            f"decimation={request.binning_x}x{request.binning_y} "
            f"roi=({request.roi.x_offset}, {request.roi.y_offset}, "
            f"{request.roi.width}x{request.roi.height}) "
            f"generation={active.generation}"
        )

        self.publish_cropped_frame()

        if active.mode is RequestMode.PERIODIC:
            with self._request_lock:
                # Skipped when a newer request replaced this one meanwhile
                if self.request_state.is_current(active.generation, RequestMode.PERIODIC):
                    self.scheduler.arm(
                        request.publish_frequency,
                        functools.partial(self.on_timer_tick, active.generation),
                    )

        return active

    def on_timer_tick(self, generation: Optional[int] = None) -> None:
        """
        Publish for a periodic request.

        Ticks are ignored unless the current request is PERIODIC and, when
        given, generation matches it.
        """
        if generation is None:
            active = self.request_state.current()
            stale = active is None or active.mode is not RequestMode.PERIODIC
        else:
            stale = not self.request_state.is_current(generation, RequestMode.PERIODIC)

        if stale:
            self.metrics.stale_ticks += 1
            logger.debug(f"Ignoring stale timer tick (generation={generation})")
            return

        self.publish_cropped_frame()

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish_cropped_frame(self) -> bool:
        """
        Transform the latest frame with the current crop config and publish.

        Returns:
            True if a frame was handed to the publisher
        """
        frame = self.frame_cache.latest()
        active = self.request_state.current()

        if frame is None or active is None:
            self.metrics.not_ready_skips += 1
            logger.debug("Not ready to publish (no frame or no request yet)")
            return False

        self.metrics.publish_attempts += 1
        image_out, info_out, ok = self.transform.process_image(
            active.crop_config,
            frame.image,
            frame.camera_info,
        )
        if not ok:
            self.metrics.transform_failures += 1
            logger.debug(
                f"Crop/decimate failed for frame {frame.frame_id} "
                f"with {active.crop_config}"
            )
            return False

        self.publisher.publish(
            image_out,
            info_out,
            frame_id=frame.frame_id,
            timestamp=frame.timestamp,
        )
        self.metrics.frames_published += 1
        return True

    def shutdown(self) -> None:
        """Stop periodic publishing."""
        self.scheduler.cancel()
