"""
Crop / Decimate Transform
=========================

Crops an image to a region of interest and subsamples it by integer
decimation factors, producing matching camera info.

Geometry Policy:
    - decimation factors must be >= 1
    - width/height of 0 extend the ROI to the image edge
    - an offset outside the image is invalid
    - an ROI reaching past the image edge is clipped
    - ROI sizes are truncated to a multiple of the decimation factor

Camera Info Policy:
    binning and ROI are expressed relative to the full-resolution sensor,
    so the incoming binning scales both the offset and the size:

        binning_x' = max(binning_x, 1) * decimation_x
        roi.x_offset' = roi.x_offset + x_offset * max(binning_x, 1)
        roi.width' = width * max(binning_x, 1)

    (and the same for y/height).

Invalid geometry is reported through the success flag; process_image
never raises for it.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from crop_relay.models.camera_info import CameraInfo, RegionOfInterest
from crop_relay.models.request import DownsampleRequest


logger = logging.getLogger(__name__)


TransformResult = Tuple[Optional[np.ndarray], Optional[CameraInfo], bool]


@dataclass(frozen=True)
class CropDecimateConfig:
    """
    Crop and decimation parameters.

    Attributes:
        decimation_x: Horizontal subsampling stride
        decimation_y: Vertical subsampling stride
        width: ROI width in source pixels (0 = to the edge)
        height: ROI height in source pixels (0 = to the edge)
        x_offset: ROI left edge
        y_offset: ROI top edge
    """

    decimation_x: int = 1
    decimation_y: int = 1
    width: int = 0
    height: int = 0
    x_offset: int = 0
    y_offset: int = 0

    @classmethod
    def from_request(cls, request: DownsampleRequest) -> "CropDecimateConfig":
        return cls(
            decimation_x=request.binning_x,
            decimation_y=request.binning_y,
            width=request.roi.width,
            height=request.roi.height,
            x_offset=request.roi.x_offset,
            y_offset=request.roi.y_offset,
        )


class CropDecimate:
    """
    Stateless crop/decimate processor.

    Example:
        processor = CropDecimate()
        image_out, info_out, ok = processor.process_image(config, image, info)
        if ok:
            publish(image_out, info_out)
    """

    def process_image(
        self,
        config: CropDecimateConfig,
        image: np.ndarray,
        camera_info: CameraInfo,
    ) -> TransformResult:
        """
        Apply the crop and decimation to one image.

        Args:
            config: Crop and decimation parameters
            image: Source pixels, (H, W) or (H, W, C)
            camera_info: Source camera info

        Returns:
            (image, camera_info, True) on success,
            (None, None, False) on invalid geometry
        """
        if config.decimation_x < 1 or config.decimation_y < 1:
            logger.debug(f"Invalid decimation {config.decimation_x}x{config.decimation_y}")
            return None, None, False

        image_height, image_width = image.shape[:2]

        if config.x_offset >= image_width or config.y_offset >= image_height:
            logger.debug(
                f"ROI offset ({config.x_offset}, {config.y_offset}) outside "
                f"{image_width}x{image_height} image"
            )
            return None, None, False

        width = config.width or image_width - config.x_offset
        height = config.height or image_height - config.y_offset
        width = min(width, image_width - config.x_offset)
        height = min(height, image_height - config.y_offset)

        width -= width % config.decimation_x
        height -= height % config.decimation_y

        if width <= 0 or height <= 0:
            logger.debug(f"Empty ROI after decimation: {width}x{height}")
            return None, None, False

        cropped = image[
            config.y_offset:config.y_offset + height:config.decimation_y,
            config.x_offset:config.x_offset + width:config.decimation_x,
        ]
        image_out = np.ascontiguousarray(cropped)

        binning_x = max(camera_info.binning_x, 1)
        binning_y = max(camera_info.binning_y, 1)

        info_out = camera_info.model_copy(
            update={
                "binning_x": binning_x * config.decimation_x,
                "binning_y": binning_y * config.decimation_y,
                "roi": RegionOfInterest(
                    x_offset=camera_info.roi.x_offset + config.x_offset * binning_x,
                    y_offset=camera_info.roi.y_offset + config.y_offset * binning_y,
                    width=width * binning_x,
                    height=height * binning_y,
                    do_rectify=camera_info.roi.do_rectify,
                ),
            },
            deep=True,
        )

        return image_out, info_out, True
