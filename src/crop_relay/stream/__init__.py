"""
Stream Module
=============

Frame transport components for the crop relay.

This module provides the I/O layer around the relay controller:
    - Frame: Immutable decoded (image, camera info) snapshot
    - FrameCache: Latest-frame cell
    - FrameConsumer: WebSocket client for the camera source
    - OutputPublisher: Fan-out to downstream WebSocket consumers
    - Outbox: Per-consumer drop-oldest queue

Example:
    from crop_relay.stream import FrameConsumer, OutputPublisher

    publisher = OutputPublisher(on_consumer_count=gate.on_consumer_count_changed)
    consumer = FrameConsumer(
        url="ws://localhost:8000/ws/camera",
        on_frame=controller.on_frame_arrived,
    )
"""

from crop_relay.stream.frame import Frame
from crop_relay.stream.cache import FrameCache
from crop_relay.stream.buffer import Outbox
from crop_relay.stream.consumer import FrameConsumer, FrameConsumerMetrics
from crop_relay.stream.publisher import OutputPublisher


__all__ = [
    "Frame",
    "FrameCache",
    "Outbox",
    "FrameConsumer",
    "FrameConsumerMetrics",
    "OutputPublisher",
]
