"""
Camera Info Schema
==================

Calibration and region metadata that travels with every image.

The layout follows the common camera calibration message: intrinsics
(k), distortion (d), rectification (r), projection (p), plus the
binning and region of interest that describe how the delivered image
relates to the full sensor.

Binning Convention:
    binning_x/binning_y of 0 and 1 both mean "no binning". Consumers
    should always read them through max(binning, 1).

Region of Interest Convention:
    A roi with width == 0 and height == 0 means "full resolution".
    Offsets and sizes are expressed in full-resolution (unbinned) pixels.
"""

from typing import List

from pydantic import BaseModel, Field


def _identity3() -> List[float]:
    return [1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0]


class RegionOfInterest(BaseModel):
    """Sub-rectangle of an image, given by offset and size."""

    x_offset: int = Field(default=0, ge=0, description="Leftmost pixel of the ROI")
    y_offset: int = Field(default=0, ge=0, description="Topmost pixel of the ROI")
    width: int = Field(default=0, ge=0, description="ROI width (0 = to the image edge)")
    height: int = Field(default=0, ge=0, description="ROI height (0 = to the image edge)")
    do_rectify: bool = Field(default=False, description="Whether the ROI should be rectified")


class CameraInfo(BaseModel):
    """
    Camera calibration and image geometry metadata.

    Attributes:
        frame_id: Coordinate frame of the camera
        width: Full-resolution image width
        height: Full-resolution image height
        distortion_model: Name of the distortion model
        d: Distortion coefficients
        k: 3x3 intrinsic matrix, row-major
        r: 3x3 rectification matrix, row-major
        p: 3x4 projection matrix, row-major
        binning_x: Horizontal binning factor (0/1 = none)
        binning_y: Vertical binning factor (0/1 = none)
        roi: Region of interest within the full-resolution image
    """

    frame_id: str = Field(default="camera", description="Camera coordinate frame")
    width: int = Field(default=0, ge=0, description="Full-resolution width")
    height: int = Field(default=0, ge=0, description="Full-resolution height")
    distortion_model: str = Field(default="plumb_bob", description="Distortion model name")
    d: List[float] = Field(default_factory=list, description="Distortion coefficients")
    k: List[float] = Field(default_factory=_identity3, min_length=9, max_length=9)
    r: List[float] = Field(default_factory=_identity3, min_length=9, max_length=9)
    p: List[float] = Field(
        default_factory=lambda: [1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0],
        min_length=12,
        max_length=12,
    )
    binning_x: int = Field(default=0, ge=0, description="Horizontal binning (0/1 = none)")
    binning_y: int = Field(default=0, ge=0, description="Vertical binning (0/1 = none)")
    roi: RegionOfInterest = Field(default_factory=RegionOfInterest)
