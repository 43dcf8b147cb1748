"""
Frame Data Model
=================

Internal frame representation shared by the source, the cache and the
publish path.

Design Rules:
    - A Frame is an immutable snapshot of one source observation
    - The pixel buffer is marked read-only on construction
    - Holds decoded pixels; wire encoding lives in image_codec
"""

from dataclasses import dataclass

import numpy as np

from crop_relay.models.camera_info import CameraInfo


@dataclass(frozen=True, slots=True, eq=False)
class Frame:
    """
    One (image, camera info) observation from the camera source.

    Attributes:
        image: Decoded pixels, shape (H, W) or (H, W, C)
        camera_info: Calibration and ROI metadata for the image
        frame_id: Frame counter from the source
        timestamp: UNIX timestamp when the frame was captured

    Note:
        The array is flagged read-only so a cached frame cannot be
        modified in place by a downstream stage.
    """

    image: np.ndarray
    camera_info: CameraInfo
    frame_id: int = 0
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        self.image.setflags(write=False)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixels."""
        return (
            f"Frame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"shape={self.image.shape})"
        )
