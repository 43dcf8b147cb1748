"""
Crop Relay
==========

Demand-driven crop/decimate image relay.

The relay receives a continuous stream of (image, camera info) frames,
accepts downsampling requests that select a region of interest,
decimation factors and a delivery mode, and republishes a cropped and
decimated version of the stream according to that mode.

Components:
    - models: Camera info, request and wire message schemas
    - stream: Frame source client, frame cache and output fan-out
    - transform: Crop/decimate pixel transform
    - relay: Request state, subscription gate, publish scheduler, controller

Example:
    from crop_relay.relay import RelayController
    from crop_relay.models import DownsampleRequest

    controller = RelayController(publisher)
    controller.on_request_arrived(DownsampleRequest(mode="ONCE", binning_x=2, binning_y=2))

The HTTP/WebSocket service lives in crop_relay.main.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
