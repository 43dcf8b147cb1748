"""
Test Configuration
==================

Pytest fixtures and test configuration for the crop relay.
"""

import base64

import cv2
import numpy as np
import pytest


class RecordingPublisher:
    """Publisher double that records every published frame."""

    def __init__(self):
        self.published = []

    def publish(self, image, camera_info, frame_id=0, timestamp=0.0):
        self.published.append((image, camera_info, frame_id, timestamp))

    @property
    def count(self):
        return len(self.published)


class FakeTimer:
    """Recurring timer that only fires when told to."""

    def __init__(self, period, callback):
        self.period = period
        self.callback = callback
        self.cancelled = False

    def fire(self):
        # Fires even after cancel, like a tick already in flight
        self.callback()

    def cancel(self):
        self.cancelled = True


class FakeTimerFactory:
    """Timer factory that keeps every timer it creates."""

    def __init__(self):
        self.timers = []

    def __call__(self, period, callback):
        timer = FakeTimer(period, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if not t.cancelled]


def make_image(height=48, width=64, channels=3):
    """Deterministic test image where each pixel encodes its position."""
    ys, xs = np.mgrid[0:height, 0:width]
    plane = ((ys * width + xs) % 256).astype(np.uint8)
    if channels == 1:
        return plane
    return np.stack([plane] * channels, axis=-1)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def timer_factory():
    return FakeTimerFactory()


@pytest.fixture
def camera_info():
    from crop_relay.models.camera_info import CameraInfo

    return CameraInfo(width=64, height=48)


@pytest.fixture
def make_frame(camera_info):
    """Build Frames with a fresh test image."""
    from crop_relay.stream.frame import Frame

    def _make(frame_id=0, height=48, width=64, channels=3, info=None):
        return Frame(
            image=make_image(height, width, channels),
            camera_info=info or camera_info,
            frame_id=frame_id,
            timestamp=1700000000.0 + frame_id,
        )

    return _make


@pytest.fixture
def controller(publisher, timer_factory):
    from crop_relay.relay.controller import RelayController

    return RelayController(
        publisher=publisher,
        max_publish_frequency=5.0,
        timer_factory=timer_factory,
    )


@pytest.fixture
def sample_frame_message():
    """Provide a sample wire frame message with a real PNG payload."""
    ok, buffer = cv2.imencode(".png", make_image(8, 10, 3))
    assert ok
    return {
        "frame_id": 7,
        "timestamp": 1707321234.567,
        "image": base64.b64encode(buffer.tobytes()).decode("ascii"),
        "camera_info": {"frame_id": "cam", "width": 10, "height": 8},
    }
