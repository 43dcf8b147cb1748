"""
Data Models
===========

Pydantic models for the crop relay.

This module re-exports all data models for convenient access.

Models:
    Camera:
        - RegionOfInterest: Offset/size sub-rectangle
        - CameraInfo: Calibration and image geometry

    Request:
        - RequestMode: Delivery modes (ALL, ONCE, PERIODIC, ON_ARRIVAL)
        - DownsampleRequest: Request channel message

    Wire:
        - FrameMessage: Image frame envelope (inbound and outbound)
"""

from crop_relay.models.camera_info import CameraInfo, RegionOfInterest
from crop_relay.models.request import DownsampleRequest, RequestMode
from crop_relay.models.wire import FrameMessage

__all__ = [
    # Camera
    "RegionOfInterest",
    "CameraInfo",
    # Request
    "RequestMode",
    "DownsampleRequest",
    # Wire
    "FrameMessage",
]
