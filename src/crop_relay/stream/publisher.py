"""
Output Publisher
================

Fan-out of processed frames to attached downstream consumers.

Each consumer gets its own Outbox. publish() encodes a frame once and
enqueues the same payload in every outbox without waiting, so a slow
consumer only ever loses its own oldest frames.

Attach and detach notify a consumer-count listener; the relay uses this
to open and close the upstream subscription.
"""

import logging
import threading
from typing import Callable, List, Optional

import numpy as np

from crop_relay.models.camera_info import CameraInfo
from crop_relay.stream.buffer import Outbox
from crop_relay.stream.image_codec import ImageEncodeError, encode_frame_message


logger = logging.getLogger(__name__)


class OutputPublisher:
    """
    Publishes (image, camera info) pairs to all attached consumers.

    Attributes:
        image_format: Encoding of published images ('png' or 'jpg')
        jpeg_quality: JPEG quality when image_format is 'jpg'
        queue_size: Outbox depth per consumer
        on_consumer_count: Listener called with the new count after
            every attach/detach
    """

    def __init__(
        self,
        image_format: str = "png",
        jpeg_quality: int = 90,
        queue_size: int = 1,
        on_consumer_count: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.image_format = image_format
        self.jpeg_quality = jpeg_quality
        self.queue_size = queue_size
        self.on_consumer_count = on_consumer_count

        self._lock = threading.Lock()
        # Held across a count change and its notification so listeners
        # see counts in the order they happened
        self._notify_lock = threading.Lock()
        self._outboxes: List[Outbox] = []

        self.frames_published: int = 0
        self.encode_errors: int = 0

    @property
    def consumer_count(self) -> int:
        with self._lock:
            return len(self._outboxes)

    def attach(self) -> Outbox:
        """Register a new consumer and return its outbox."""
        outbox = Outbox(maxsize=self.queue_size)
        with self._notify_lock:
            with self._lock:
                self._outboxes.append(outbox)
                count = len(self._outboxes)
            logger.info(f"Consumer attached ({count} total)")
            self._notify(count)
        return outbox

    def detach(self, outbox: Outbox) -> None:
        """Unregister a consumer. Unknown outboxes are ignored."""
        with self._notify_lock:
            with self._lock:
                if outbox not in self._outboxes:
                    return
                self._outboxes.remove(outbox)
                count = len(self._outboxes)
            logger.info(f"Consumer detached ({count} remaining)")
            self._notify(count)

    def publish(
        self,
        image: np.ndarray,
        camera_info: CameraInfo,
        frame_id: int = 0,
        timestamp: float = 0.0,
    ) -> None:
        """
        Encode and enqueue a frame for every attached consumer.

        Never blocks. Encoding failures are logged and counted.
        """
        with self._lock:
            outboxes = list(self._outboxes)

        if not outboxes:
            return

        try:
            message = encode_frame_message(
                image,
                camera_info,
                frame_id=frame_id,
                timestamp=timestamp,
                image_format=self.image_format,
                jpeg_quality=self.jpeg_quality,
            )
        except ImageEncodeError as e:
            self.encode_errors += 1
            logger.error(f"Failed to encode output frame {frame_id}: {e}")
            return

        payload = message.model_dump_json()
        for outbox in outboxes:
            outbox.put_nowait(payload)
        self.frames_published += 1

    def metrics(self) -> dict:
        with self._lock:
            outboxes = list(self._outboxes)
        return {
            "consumers": len(outboxes),
            "frames_published": self.frames_published,
            "frames_dropped": sum(o.dropped_count for o in outboxes),
            "encode_errors": self.encode_errors,
        }

    def _notify(self, count: int) -> None:
        if self.on_consumer_count is not None:
            self.on_consumer_count(count)
