"""FrameMetricsAggregate: derived per-session frame statistics.

Percentiles use the nearest-rank estimator ``sorted[floor(n * p)]``
clamped to the valid index range, the same estimator used for every
previously exported baseline.
"""

from __future__ import annotations

import math
from typing import Sequence

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from screenflow.domain.frame import FrameMetric


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending-sorted sequence."""
    if not sorted_values:
        return 0.0
    index = math.floor(len(sorted_values) * p)
    index = max(0, min(index, len(sorted_values) - 1))
    return sorted_values[index]


class FrameMetricsAggregate(BaseModel):
    """Immutable summary of a session's frame metrics."""

    avg_build_ms: float = 0.0
    p90_build_ms: float = 0.0
    p99_build_ms: float = 0.0
    avg_raster_ms: float = 0.0
    p90_raster_ms: float = 0.0
    p99_raster_ms: float = 0.0
    frame_count: int = Field(0, ge=0)
    janky_frame_count: int = Field(0, ge=0)

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @classmethod
    def from_metrics(cls, metrics: Sequence[FrameMetric]) -> FrameMetricsAggregate:
        if not metrics:
            return cls()

        build = sorted(m.build_duration_ms for m in metrics)
        raster = sorted(m.raster_duration_ms for m in metrics)

        return cls(
            avg_build_ms=sum(build) / len(build),
            p90_build_ms=percentile(build, 0.90),
            p99_build_ms=percentile(build, 0.99),
            avg_raster_ms=sum(raster) / len(raster),
            p90_raster_ms=percentile(raster, 0.90),
            p99_raster_ms=percentile(raster, 0.99),
            frame_count=len(metrics),
            janky_frame_count=sum(1 for m in metrics if m.is_janky),
        )

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)
