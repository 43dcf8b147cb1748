"""
Downsample Request Schema
=========================

Pydantic model for downsampling requests received on the request channel.

A request selects a region of interest, decimation factors and a delivery
mode. Each request fully replaces the previous one; there is no queueing
and no merging.

Input Contract:
    {
        "mode": "PERIODIC",
        "binning_x": 2,
        "binning_y": 2,
        "roi": {"x_offset": 0, "y_offset": 0, "width": 640, "height": 480},
        "publish_frequency": 5.0
    }

Modes:
    ALL        - republish on every source frame
    ONCE       - publish a single frame, then wait for the next request
    PERIODIC   - publish now, then at publish_frequency (capped)
    ON_ARRIVAL - publish once per request (default)

Unrecognized mode strings are accepted and resolve to ON_ARRIVAL.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from crop_relay.models.camera_info import RegionOfInterest


class RequestMode(str, Enum):
    """
    Delivery modes for a downsample request.

    Attributes:
        ALL: Continuous passthrough, one output per input frame
        ONCE: Single publish at request time
        PERIODIC: Publish at request time, then on a recurring timer
        ON_ARRIVAL: Free-run default, one publish per request
    """

    ALL = "ALL"
    ONCE = "ONCE"
    PERIODIC = "PERIODIC"
    ON_ARRIVAL = "ON_ARRIVAL"


class DownsampleRequest(BaseModel):
    """
    Schema for downsample requests.

    Attributes:
        mode: Requested delivery mode (free-form, see resolved_mode)
        binning_x: Horizontal decimation factor
        binning_y: Vertical decimation factor
        roi: Region of interest to crop to
        publish_frequency: Requested rate for PERIODIC mode (Hz)
    """

    mode: str = Field(
        default=RequestMode.ON_ARRIVAL.value,
        description="Delivery mode: ALL, ONCE, PERIODIC or ON_ARRIVAL",
    )

    binning_x: int = Field(default=1, ge=1, description="Horizontal decimation factor")

    binning_y: int = Field(default=1, ge=1, description="Vertical decimation factor")

    roi: RegionOfInterest = Field(default_factory=RegionOfInterest)

    publish_frequency: float = Field(
        default=0.0,
        description="Requested publish frequency for PERIODIC mode (Hz)",
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: object) -> str:
        if isinstance(value, RequestMode):
            return value.value
        return str(value).strip().upper()

    @property
    def mode_recognized(self) -> bool:
        """Whether mode names one of the known delivery modes."""
        return self.mode in RequestMode.__members__

    @property
    def resolved_mode(self) -> RequestMode:
        """Effective delivery mode; unknown modes free-run."""
        if self.mode_recognized:
            return RequestMode(self.mode)
        return RequestMode.ON_ARRIVAL

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "mode": "PERIODIC",
                "binning_x": 2,
                "binning_y": 2,
                "roi": {"x_offset": 0, "y_offset": 0, "width": 640, "height": 480},
                "publish_frequency": 5.0,
            }
        }
