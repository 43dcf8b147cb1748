"""
Image Codec
===========

Conversion between wire frame messages and decoded Frames.

Design Rules:
    - This is the ONLY place in the codebase that decodes or encodes images
    - Decoding keeps the source channel layout (grayscale stays 2-D)
    - Fails fast on corrupt payloads with ImageDecodeError
"""

import base64
import binascii
import logging

import cv2
import numpy as np

from crop_relay.models.camera_info import CameraInfo
from crop_relay.models.wire import FrameMessage
from crop_relay.stream.frame import Frame


logger = logging.getLogger(__name__)


class ImageDecodeError(Exception):
    """Raised when image decoding fails."""
    pass


class ImageEncodeError(Exception):
    """Raised when image encoding fails."""
    pass


def decode_image(image_b64: str) -> np.ndarray:
    """
    Decode a base64 PNG/JPEG payload into a numpy array.

    Args:
        image_b64: Base64-encoded image bytes

    Returns:
        Image as np.ndarray, (H, W) for grayscale or (H, W, C) for color

    Raises:
        ImageDecodeError: If decoding fails or the result is empty
    """
    try:
        image_bytes = base64.b64decode(image_b64, validate=True)
    except binascii.Error as e:
        raise ImageDecodeError(f"Base64 decode failed: {e}")

    nparr = np.frombuffer(image_bytes, np.uint8)
    if nparr.size == 0:
        raise ImageDecodeError("Empty image payload")

    image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ImageDecodeError("cv2.imdecode returned None")

    if image.ndim not in (2, 3) or image.size == 0:
        raise ImageDecodeError(f"Invalid image shape: {image.shape}")

    return image


def encode_image(image: np.ndarray, image_format: str = "png", jpeg_quality: int = 90) -> str:
    """
    Encode a numpy image as base64 PNG or JPEG.

    Args:
        image: Pixels to encode
        image_format: 'png' or 'jpg'
        jpeg_quality: Quality used for 'jpg'

    Returns:
        Base64-encoded image bytes

    Raises:
        ImageEncodeError: If the format is unknown or OpenCV fails
    """
    if image_format == "png":
        ok, buffer = cv2.imencode(".png", image)
    elif image_format == "jpg":
        ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), jpeg_quality])
    else:
        raise ImageEncodeError(f"Unknown image format: {image_format}")

    if not ok:
        raise ImageEncodeError(f"cv2.imencode failed for shape {image.shape}")

    return base64.b64encode(buffer.tobytes()).decode("ascii")


def decode_frame_message(message: FrameMessage) -> Frame:
    """
    Build a Frame from a validated wire message.

    Raises:
        ImageDecodeError: If the image payload is invalid
    """
    try:
        image = decode_image(message.image)
    except ImageDecodeError as e:
        raise ImageDecodeError(f"Frame {message.frame_id}: {e}")

    return Frame(
        image=image,
        camera_info=message.camera_info,
        frame_id=message.frame_id,
        timestamp=message.timestamp,
    )


def encode_frame_message(
    image: np.ndarray,
    camera_info: CameraInfo,
    frame_id: int,
    timestamp: float,
    image_format: str = "png",
    jpeg_quality: int = 90,
) -> FrameMessage:
    """Wrap pixels and camera info into a wire message."""
    return FrameMessage(
        frame_id=frame_id,
        timestamp=timestamp,
        image=encode_image(image, image_format, jpeg_quality),
        camera_info=camera_info,
    )
