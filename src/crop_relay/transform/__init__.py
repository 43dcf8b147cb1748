"""
Transform Module
================

Pixel-level crop and decimation of source frames.
"""

from crop_relay.transform.crop_decimate import CropDecimate, CropDecimateConfig

__all__ = [
    "CropDecimate",
    "CropDecimateConfig",
]
