"""
Request State
=============

Versioned cell holding the currently active downsample request.

Every replacement bumps a monotonically increasing generation number.
Callbacks that were scheduled for an older request compare their
generation with the current one and step aside when they differ.
"""

import threading
from dataclasses import dataclass
from typing import Optional

from crop_relay.models.request import DownsampleRequest, RequestMode
from crop_relay.transform.crop_decimate import CropDecimateConfig


@dataclass(frozen=True)
class ActiveRequest:
    """
    Snapshot of the current request.

    Attributes:
        request: The request as received
        mode: Resolved delivery mode
        crop_config: Crop/decimation parameters derived from the request
        generation: Replacement counter, starting at 1
    """

    request: DownsampleRequest
    mode: RequestMode
    crop_config: CropDecimateConfig
    generation: int


class RequestState:
    """Current-request cell with atomic replace and generation tracking."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Optional[ActiveRequest] = None
        self._generation: int = 0

    def replace(self, request: DownsampleRequest) -> ActiveRequest:
        """Make request the current one and return its snapshot."""
        crop_config = CropDecimateConfig.from_request(request)
        with self._lock:
            self._generation += 1
            self._active = ActiveRequest(
                request=request,
                mode=request.resolved_mode,
                crop_config=crop_config,
                generation=self._generation,
            )
            return self._active

    def current(self) -> Optional[ActiveRequest]:
        """Current request snapshot, or None before the first request."""
        with self._lock:
            return self._active

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def is_current(self, generation: int, mode: RequestMode) -> bool:
        """Whether generation is still active and in the given mode."""
        active = self.current()
        return (
            active is not None
            and active.generation == generation
            and active.mode is mode
        )
