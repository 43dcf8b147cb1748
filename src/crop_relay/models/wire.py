"""
Frame Message Schema
====================

Pydantic model for image frames exchanged over WebSocket.

The same envelope is used for frames received from the camera source and
for frames sent to downstream consumers.

Wire Contract:
    {
        "frame_id": 1234,
        "timestamp": 1707321234.567,
        "image": "<base64 PNG or JPEG>",
        "camera_info": {...}
    }

Example:
    from crop_relay.models.wire import FrameMessage

    raw = await websocket.recv()
    message = FrameMessage.model_validate_json(raw)

    print(f"Received frame {message.frame_id}")
"""

from pydantic import BaseModel, Field

from crop_relay.models.camera_info import CameraInfo


class FrameMessage(BaseModel):
    """
    Schema for image frame messages.

    Attributes:
        frame_id: Frame counter from the camera source
        timestamp: UNIX timestamp when the frame was captured
        image: Base64-encoded PNG or JPEG data
        camera_info: Calibration and geometry of the image
    """

    frame_id: int = Field(
        ...,
        ge=0,
        description="Frame counter from the camera source",
    )

    timestamp: float = Field(
        ...,
        ge=0,
        description="UNIX timestamp in seconds when the frame was captured",
    )

    image: str = Field(
        ...,
        min_length=1,
        description="Base64-encoded PNG or JPEG frame data",
    )

    camera_info: CameraInfo = Field(
        ...,
        description="Camera calibration and ROI metadata",
    )
