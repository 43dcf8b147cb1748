"""
Crop / Decimate Tests
=====================
"""

import numpy as np
import pytest

from crop_relay.models.camera_info import CameraInfo, RegionOfInterest
from crop_relay.transform.crop_decimate import CropDecimate, CropDecimateConfig

from conftest import make_image


@pytest.fixture
def processor():
    return CropDecimate()


class TestGeometry:
    """Tests for the pixel side of the transform."""

    def test_identity(self, processor, camera_info):
        image = make_image()
        out, info, ok = processor.process_image(CropDecimateConfig(), image, camera_info)

        assert ok
        np.testing.assert_array_equal(out, image)
        assert info.binning_x == 1
        assert info.roi.width == 64
        assert info.roi.height == 48

    def test_decimation_strides(self, processor, camera_info):
        image = make_image(channels=1)
        config = CropDecimateConfig(decimation_x=4, decimation_y=2)

        out, _, ok = processor.process_image(config, image, camera_info)

        assert ok
        assert out.shape == (24, 16)
        np.testing.assert_array_equal(out, image[::2, ::4])
        assert out.flags["C_CONTIGUOUS"]

    def test_roi_crop(self, processor, camera_info):
        image = make_image()
        config = CropDecimateConfig(x_offset=10, y_offset=5, width=20, height=10)

        out, _, ok = processor.process_image(config, image, camera_info)

        assert ok
        np.testing.assert_array_equal(out, image[5:15, 10:30])

    def test_zero_size_extends_to_edge(self, processor, camera_info):
        config = CropDecimateConfig(x_offset=60, y_offset=40)

        out, _, ok = processor.process_image(config, make_image(), camera_info)

        assert ok
        assert out.shape[:2] == (8, 4)

    def test_oversized_roi_is_clipped(self, processor, camera_info):
        config = CropDecimateConfig(x_offset=50, y_offset=0, width=100, height=100)

        out, info, ok = processor.process_image(config, make_image(), camera_info)

        assert ok
        assert out.shape[:2] == (48, 14)
        assert info.roi.width == 14

    def test_size_truncated_to_decimation(self, processor, camera_info):
        config = CropDecimateConfig(decimation_x=3, decimation_y=5, width=10, height=11)

        out, info, ok = processor.process_image(config, make_image(), camera_info)

        assert ok
        assert out.shape[:2] == (2, 3)
        assert (info.roi.width, info.roi.height) == (9, 10)

    @pytest.mark.parametrize(
        "config",
        [
            CropDecimateConfig(decimation_x=0),
            CropDecimateConfig(decimation_y=0),
            CropDecimateConfig(x_offset=64),
            CropDecimateConfig(y_offset=48),
            CropDecimateConfig(x_offset=62, decimation_x=4),
        ],
    )
    def test_invalid_geometry_fails(self, processor, camera_info, config):
        """Invalid geometry is reported, not raised."""
        out, info, ok = processor.process_image(config, make_image(), camera_info)

        assert not ok
        assert out is None
        assert info is None


class TestCameraInfo:
    """Tests for the camera info side of the transform."""

    def test_binning_and_roi_scale_with_input_binning(self, processor):
        info_in = CameraInfo(
            width=128,
            height=96,
            binning_x=2,
            binning_y=2,
            roi=RegionOfInterest(x_offset=4, y_offset=6, width=128, height=96),
        )
        config = CropDecimateConfig(decimation_x=2, decimation_y=3, x_offset=8, y_offset=3, width=16, height=12)

        _, info, ok = processor.process_image(config, make_image(), info_in)

        assert ok
        assert (info.binning_x, info.binning_y) == (4, 6)
        assert info.roi.x_offset == 4 + 8 * 2
        assert info.roi.y_offset == 6 + 3 * 2
        assert info.roi.width == 16 * 2
        assert info.roi.height == 12 * 2
        assert info.width == 128

    def test_input_info_unchanged(self, processor, camera_info):
        before = camera_info.model_dump()
        processor.process_image(CropDecimateConfig(decimation_x=2, x_offset=4), make_image(), camera_info)

        assert camera_info.model_dump() == before
