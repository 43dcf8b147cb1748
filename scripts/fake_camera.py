#!/usr/bin/env python3
"""
Synthetic Camera Source
=======================

Serves a moving test pattern as (image, camera info) frame messages over
WebSocket, for running the relay without real hardware.

Usage:
    python scripts/fake_camera.py --port 8000 --fps 30
    CROP_RELAY_STREAM_URL=ws://localhost:8000/ws/camera crop-relay
"""

import argparse
import asyncio
import logging
import time

import cv2
import numpy as np
import websockets

from crop_relay.models.camera_info import CameraInfo
from crop_relay.stream.image_codec import encode_frame_message


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def render(frame_id: int, width: int, height: int) -> np.ndarray:
    """Gradient background with a moving marker and the frame counter."""
    xs = np.linspace(0, 255, width, dtype=np.uint8)
    image = np.repeat(np.tile(xs, (height, 1))[:, :, None], 3, axis=2)
    cx = (frame_id * 4) % width
    cv2.circle(image, (cx, height // 2), max(4, height // 10), (0, 0, 255), -1)
    cv2.putText(image, str(frame_id), (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (255, 255, 255), 2)
    return image


async def stream(websocket, fps: float, width: int, height: int) -> None:
    """Send frames to one subscriber until it disconnects."""
    info = CameraInfo(
        frame_id="fake_camera",
        width=width,
        height=height,
        k=[width, 0.0, width / 2, 0.0, width, height / 2, 0.0, 0.0, 1.0],
    )
    logger.info("Subscriber connected")
    frame_id = 0
    try:
        while True:
            message = encode_frame_message(
                render(frame_id, width, height),
                info,
                frame_id=frame_id,
                timestamp=time.time(),
                image_format="jpg",
            )
            await websocket.send(message.model_dump_json())
            frame_id += 1
            await asyncio.sleep(1.0 / fps)
    except websockets.ConnectionClosed:
        logger.info(f"Subscriber disconnected after {frame_id} frames")


async def serve(host: str, port: int, fps: float, width: int, height: int) -> None:
    async def handler(websocket):
        await stream(websocket, fps, width, height)

    async with websockets.serve(handler, host, port):
        logger.info(f"Fake camera on ws://{host}:{port}/ws/camera ({width}x{height} @ {fps} fps)")
        await asyncio.Future()


def main():
    parser = argparse.ArgumentParser(description="Synthetic camera source for the crop relay")
    parser.add_argument("--host", type=str, default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--fps", type=float, default=30.0)
    parser.add_argument("--width", type=int, default=640)
    parser.add_argument("--height", type=int, default=480)
    args = parser.parse_args()

    try:
        asyncio.run(serve(args.host, args.port, args.fps, args.width, args.height))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
