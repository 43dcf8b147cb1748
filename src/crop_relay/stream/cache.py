"""
Frame Cache
===========

Holds the most recently received source frame.

Design Rules:
    - Exactly zero or one frame is held; no history
    - Each arrival replaces the previous frame wholesale
    - Readers get the snapshot current at the moment of the read
"""

import threading
from typing import Optional

from crop_relay.stream.frame import Frame


class FrameCache:
    """
    Latest-frame cell with atomic replace semantics.

    Example:
        cache = FrameCache()
        cache.store(frame)

        latest = cache.latest()
        if latest is not None:
            process(latest)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: Optional[Frame] = None
        self._total_stored: int = 0

    def store(self, frame: Frame) -> None:
        """Replace the cached frame."""
        with self._lock:
            self._frame = frame
            self._total_stored += 1

    def latest(self) -> Optional[Frame]:
        """Most recent frame, or None if nothing has arrived yet."""
        with self._lock:
            return self._frame

    @property
    def has_frame(self) -> bool:
        return self.latest() is not None

    @property
    def total_stored(self) -> int:
        """Total frames ever stored."""
        return self._total_stored
