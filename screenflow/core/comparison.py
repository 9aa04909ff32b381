"""Baseline vs candidate comparison.

A pure diff of three headline metrics.  Every delta is ``candidate -
baseline``; for all three a negative delta is an improvement.  Deciding
how large a delta must be to count as "worse" is a presentation concern,
so :meth:`SessionComparison.regressions` takes the threshold as an
argument.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import BaseModel, Field

from screenflow.domain.session import ScreenSession

DEFAULT_REGRESSION_THRESHOLD = 0.5


class MetricDelta(BaseModel):
    """One compared metric."""

    name: str
    baseline: float
    candidate: float
    delta: float = Field(..., description="candidate - baseline; negative is better")

    model_config = {"frozen": True}

    @property
    def improved(self) -> bool:
        return self.delta < 0


class SessionComparison(BaseModel):
    """Immutable diff between a baseline and a candidate session."""

    baseline_session_id: str
    candidate_session_id: str
    baseline_route: str
    candidate_route: str
    avg_build_ms: MetricDelta
    avg_raster_ms: MetricDelta
    jank_percentage: MetricDelta

    model_config = {"frozen": True}

    @property
    def metrics(self) -> list[MetricDelta]:
        return [self.avg_build_ms, self.avg_raster_ms, self.jank_percentage]

    def regressions(self, threshold: float = DEFAULT_REGRESSION_THRESHOLD) -> list[MetricDelta]:
        """Metrics that got worse by more than *threshold*."""
        return [m for m in self.metrics if m.delta > threshold]


def _delta(name: str, baseline: float, candidate: float) -> MetricDelta:
    return MetricDelta(name=name, baseline=baseline, candidate=candidate, delta=candidate - baseline)


def compare_sessions(baseline: ScreenSession, candidate: ScreenSession) -> SessionComparison:
    return SessionComparison(
        baseline_session_id=baseline.session_id,
        candidate_session_id=candidate.session_id,
        baseline_route=baseline.route_name,
        candidate_route=candidate.route_name,
        avg_build_ms=_delta("avg_build_ms", baseline.avg_build_ms, candidate.avg_build_ms),
        avg_raster_ms=_delta("avg_raster_ms", baseline.avg_raster_ms, candidate.avg_raster_ms),
        jank_percentage=_delta(
            "jank_percentage", baseline.jank_percentage, candidate.jank_percentage
        ),
    )


def match_baseline(
    baselines: Iterable[ScreenSession],
    route_name: str,
) -> Optional[ScreenSession]:
    """The most recently started baseline session for *route_name*, if any."""
    candidates = [s for s in baselines if s.route_name == route_name]
    if not candidates:
        return None
    return max(candidates, key=lambda s: s.start_time_micros)
