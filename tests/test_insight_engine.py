"""Tests for the InsightEngine detectors."""

from __future__ import annotations

import pytest

from screenflow.core.insight_engine import InsightEngine
from screenflow.domain.enums import Severity
from screenflow.domain.frame import FrameMetric
from screenflow.domain.session import ScreenSession

from tests.test_frame import _frame


def _completed(frames: list[FrameMetric], timeline: list[dict] | None = None) -> ScreenSession:
    """A sealed session holding *frames* and *timeline*."""
    session = ScreenSession("/screen", 0)
    for frame in frames:
        session.add_frame_metric(frame)
    session.end(1_000_000)
    if timeline is not None:
        session.timeline_events = timeline
    return session


def _smooth(count: int) -> list[FrameMetric]:
    return [_frame(total_ms=4.0, n=i) for i in range(count)]


def _types(session: ScreenSession) -> list[str]:
    return [i.type for i in InsightEngine().analyze(session)]


def _only(session: ScreenSession, insight_type: str):
    matches = [i for i in InsightEngine().analyze(session) if i.type == insight_type]
    assert len(matches) == 1
    return matches[0]


class TestGuards:
    def test_open_session_has_no_insights(self) -> None:
        session = ScreenSession("/screen", 0)
        session.add_frame_metric(_frame(total_ms=40.0))
        assert InsightEngine().analyze(session) == []

    def test_session_without_frames_has_no_insights(self) -> None:
        session = ScreenSession("/screen", 0)
        session.end(10)
        session.timeline_events = [{"name": "Canvas::saveLayer"}]
        assert InsightEngine().analyze(session) == []

    def test_smooth_session_is_clean(self) -> None:
        assert _types(_completed(_smooth(30))) == []


class TestFrameDetectors:
    def test_ten_percent_jank_is_warning(self) -> None:
        frames = [_frame(total_ms=10.0) for _ in range(18)] + [_frame(total_ms=20.0) for _ in range(2)]
        insight = _only(_completed(frames), "excessive_jank")
        assert insight.severity is Severity.WARNING
        assert insight.metadata["jankyFrames"] == 2
        assert insight.metadata["totalFrames"] == 20
        assert "10.0%" in insight.description

    def test_jank_just_below_threshold(self) -> None:
        frames = [_frame(total_ms=10.0) for _ in range(19)] + [_frame(total_ms=20.0)]
        assert "excessive_jank" not in _types(_completed(frames))

    def test_twenty_percent_jank_is_critical(self) -> None:
        frames = [_frame(total_ms=10.0) for _ in range(8)] + [_frame(total_ms=20.0) for _ in range(2)]
        assert _only(_completed(frames), "excessive_jank").severity is Severity.CRITICAL

    @pytest.mark.parametrize(
        "build_ms, severity",
        [(9.0, Severity.WARNING), (12.0, Severity.WARNING), (13.0, Severity.CRITICAL)],
    )
    def test_high_build_time(self, build_ms: float, severity: Severity) -> None:
        frames = [_frame(total_ms=build_ms + 1.0, build_ms=build_ms, raster_ms=1.0) for _ in range(5)]
        insight = _only(_completed(frames), "high_build_time")
        assert insight.severity is severity
        assert insight.metadata["avgBuildMs"] == pytest.approx(build_ms)

    def test_build_time_at_threshold_is_fine(self) -> None:
        frames = [_frame(total_ms=9.0, build_ms=8.0, raster_ms=1.0) for _ in range(5)]
        assert "high_build_time" not in _types(_completed(frames))

    @pytest.mark.parametrize(
        "raster_ms, severity",
        [(9.0, Severity.WARNING), (13.0, Severity.CRITICAL)],
    )
    def test_high_raster_time(self, raster_ms: float, severity: Severity) -> None:
        frames = [_frame(total_ms=raster_ms + 1.0, build_ms=1.0, raster_ms=raster_ms) for _ in range(5)]
        insight = _only(_completed(frames), "high_raster_time")
        assert insight.severity is severity

    def test_build_storm(self) -> None:
        frames = [_frame(total_ms=2.0, build_ms=1.0, raster_ms=1.0) for _ in range(8)]
        frames += [_frame(total_ms=15.5, build_ms=15.0, raster_ms=0.5) for _ in range(2)]
        insight = _only(_completed(frames), "build_storm")
        assert insight.severity is Severity.WARNING
        assert insight.metadata["stormFrames"] == 2

    def test_single_spike_is_not_a_storm(self) -> None:
        frames = [_frame(total_ms=2.0, build_ms=1.0, raster_ms=1.0) for _ in range(9)]
        frames.append(_frame(total_ms=15.5, build_ms=15.0, raster_ms=0.5))
        assert "build_storm" not in _types(_completed(frames))

    def test_storm_needs_enough_frames(self) -> None:
        frames = [_frame(total_ms=2.0, build_ms=1.0, raster_ms=1.0) for _ in range(6)]
        frames += [_frame(total_ms=15.5, build_ms=15.0, raster_ms=0.5) for _ in range(3)]
        assert "build_storm" not in _types(_completed(frames))


class TestTimelineDetectors:
    def test_save_layer_warning(self) -> None:
        timeline = [{"name": "Canvas::saveLayer"} for _ in range(5)]
        insight = _only(_completed(_smooth(5), timeline), "save_layer_bleed")
        assert insight.severity is Severity.WARNING
        assert insight.metadata["saveLayerCount"] == 5

    def test_save_layer_critical_above_five(self) -> None:
        timeline = [{"name": "saveLayer"} for _ in range(6)]
        insight = _only(_completed(_smooth(5), timeline), "save_layer_bleed")
        assert insight.severity is Severity.CRITICAL

    def test_shader_compilation(self) -> None:
        timeline = [{"name": "GrGLProgramBuilder::finalize"}, {"name": "Animator::BeginFrame"}]
        insight = _only(_completed(_smooth(5), timeline), "shader_jank")
        assert insight.metadata["shaderEventCount"] == 1

    def test_intrinsic_layout_is_case_insensitive(self) -> None:
        timeline = [{"name": "RenderIntrinsicWidth"}, {"name": "computeINTRINSIC"}]
        insight = _only(_completed(_smooth(5), timeline), "intrinsic_layout")
        assert insight.metadata["intrinsicEventCount"] == 2

    def test_events_without_string_name_are_ignored(self) -> None:
        timeline = [{"name": None}, {"ts": 1}, {"name": 42}]
        assert _types(_completed(_smooth(5), timeline)) == []

    def test_detectors_fire_independently(self) -> None:
        frames = [_frame(total_ms=30.0, build_ms=15.0, raster_ms=15.0) for _ in range(5)]
        timeline = [{"name": "saveLayer"}, {"name": "IntrinsicHeight"}]
        assert sorted(_types(_completed(frames, timeline))) == sorted([
            "excessive_jank",
            "high_build_time",
            "high_raster_time",
            "save_layer_bleed",
            "intrinsic_layout",
        ])

    def test_analysis_does_not_mutate_session(self) -> None:
        session = _completed(_smooth(5), [{"name": "saveLayer"}])
        InsightEngine().analyze(session)
        assert session.insights == []
        assert session.frame_count == 5
