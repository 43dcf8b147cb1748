#!/usr/bin/env python3
"""
Relay Integration Test Script
=============================

Standalone script to exercise a running relay end to end.

This script:
    1. Connects to the relay's /ws/image output (which opens the camera
       subscription)
    2. Sends a downsample request on /ws/request
    3. Counts output frames for a configurable duration
    4. Reports the observed rate and output geometry

Prerequisites:
    - A camera source (e.g. scripts/fake_camera.py) must be running
    - The relay must be running and pointed at it

Usage:
    python scripts/relay_integration.py --mode PERIODIC --frequency 5 --duration 10
    python scripts/relay_integration.py --mode ALL --binning 4
"""

import argparse
import asyncio
import json
import logging
import sys
import time

import websockets

from crop_relay.models.wire import FrameMessage
from crop_relay.stream.image_codec import decode_image


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_test(url: str, request: dict, duration: float) -> dict:
    """
    Run the integration test.

    Args:
        url: Base WebSocket URL of the relay (ws://host:port)
        request: Downsample request to send
        duration: Seconds to collect output frames

    Returns:
        Summary dict
    """
    logger.info("=" * 60)
    logger.info(f"Relay: {url}")
    logger.info(f"Request: {json.dumps(request)}")
    logger.info(f"Duration: {duration} seconds")
    logger.info("=" * 60)

    frames = 0
    shape = None

    async with websockets.connect(f"{url}/ws/image") as image_ws:
        # Give the relay a moment to subscribe and cache a source frame
        await asyncio.sleep(1.0)

        async with websockets.connect(f"{url}/ws/request") as request_ws:
            await request_ws.send(json.dumps(request))
            ack = json.loads(await request_ws.recv())
            logger.info(f"Request ack: {ack}")

        start_time = time.time()
        while time.time() - start_time < duration:
            try:
                raw = await asyncio.wait_for(image_ws.recv(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            message = FrameMessage.model_validate_json(raw)
            shape = decode_image(message.image).shape
            frames += 1

    rate = frames / duration if duration > 0 else 0.0

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Frames received: {frames}")
    logger.info(f"Average rate: {rate:.1f} Hz")
    logger.info(f"Output shape: {shape}")
    logger.info("=" * 60)

    return {"frames_received": frames, "rate": rate, "shape": shape}


def main():
    parser = argparse.ArgumentParser(description="Crop relay integration test")
    parser.add_argument("--url", type=str, default="ws://localhost:8010")
    parser.add_argument("--mode", type=str, default="PERIODIC")
    parser.add_argument("--frequency", type=float, default=5.0)
    parser.add_argument("--binning", type=int, default=2)
    parser.add_argument("--duration", type=float, default=10.0)
    args = parser.parse_args()

    request = {
        "mode": args.mode,
        "binning_x": args.binning,
        "binning_y": args.binning,
        "publish_frequency": args.frequency,
    }

    result = asyncio.run(run_test(args.url, request, args.duration))

    sys.exit(0 if result["frames_received"] > 0 else 1)


if __name__ == "__main__":
    main()
