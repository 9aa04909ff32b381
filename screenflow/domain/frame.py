"""FrameMetric: timing of one rendered frame.

Durations are integer microseconds as reported by the host rendering
pipeline.  Millisecond views are derived, never stored.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

# 60 Hz frame budget (16.67 ms).
JANK_THRESHOLD_MICROS = 16670


class FrameMetric(BaseModel):
    """Immutable timing sample for a single frame."""

    timestamp_micros: int = Field(..., description="Monotonic capture time")
    build_duration_micros: int = Field(..., ge=0, description="UI-thread build phase")
    raster_duration_micros: int = Field(..., ge=0, description="Raster-thread phase")
    total_duration_micros: int = Field(..., ge=0, description="Build start to raster end")
    frame_number: int = Field(..., ge=0, description="Process-wide sequential counter")

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @classmethod
    def from_frame_timing(
        cls,
        timestamp_micros: int,
        build_start_micros: int,
        build_finish_micros: int,
        raster_start_micros: int,
        raster_finish_micros: int,
        frame_number: int,
    ) -> FrameMetric:
        """Build a metric from raw phase start/finish stamps."""
        return cls(
            timestamp_micros=timestamp_micros,
            build_duration_micros=build_finish_micros - build_start_micros,
            raster_duration_micros=raster_finish_micros - raster_start_micros,
            total_duration_micros=raster_finish_micros - build_start_micros,
            frame_number=frame_number,
        )

    @property
    def build_duration_ms(self) -> float:
        return self.build_duration_micros / 1000.0

    @property
    def raster_duration_ms(self) -> float:
        return self.raster_duration_micros / 1000.0

    @property
    def total_duration_ms(self) -> float:
        return self.total_duration_micros / 1000.0

    @property
    def is_janky(self) -> bool:
        """True if the frame blew the 60 Hz budget."""
        return self.total_duration_micros > JANK_THRESHOLD_MICROS

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)

    def __str__(self) -> str:
        return (
            f"FrameMetric(frame: {self.frame_number}, "
            f"build: {self.build_duration_ms:.2f}ms, "
            f"raster: {self.raster_duration_ms:.2f}ms, "
            f"total: {self.total_duration_ms:.2f}ms)"
        )
