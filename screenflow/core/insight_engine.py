"""InsightEngine: deterministic detection of rendering anti-patterns.

Design principles:
    1. Pure function: accepts a ScreenSession, returns a list of insights.
    2. No side effects, no state mutation, no I/O.
    3. Detectors are independent and order-insensitive; several may fire
       for the same session and none suppresses another.
    4. Thresholds are fixed constants so results stay comparable across
       runs and exports.

Detectors:
    excessive_jank    jank% >= 10             critical if jank% >= 20
    high_build_time   avg build ms > 8        critical if > 12
    high_raster_time  avg raster ms > 8       critical if > 12
    build_storm       >= 10 frames and more than 10% of frames build
                      slower than 3x the average
    save_layer_bleed  timeline names containing saveLayer markers
                      critical if more than 5 matches
    shader_jank       timeline names containing shader-compile markers
    intrinsic_layout  timeline names containing "intrinsic" (any case)
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from screenflow.domain.enums import InsightType, Severity
from screenflow.domain.insight import PerformanceInsight
from screenflow.domain.session import ScreenSession

JANK_WARNING_PERCENT = 10.0
JANK_CRITICAL_PERCENT = 20.0
PHASE_WARNING_MS = 8.0
PHASE_CRITICAL_MS = 12.0
BUILD_STORM_MIN_FRAMES = 10
BUILD_STORM_FACTOR = 3.0
BUILD_STORM_SHARE = 0.1
SAVE_LAYER_CRITICAL_COUNT = 5

SAVE_LAYER_MARKERS = ("saveLayer", "Canvas::saveLayer")
SHADER_MARKERS = ("GrGLProgramBuilder", "finalize")
INTRINSIC_MARKER = "intrinsic"


Detector = Callable[[ScreenSession], Optional[PerformanceInsight]]


class InsightEngine:
    """Stateless rule evaluator over completed sessions."""

    def __init__(self) -> None:
        self._detectors: tuple[Detector, ...] = (
            self._detect_excessive_jank,
            self._detect_high_build_time,
            self._detect_high_raster_time,
            self._detect_build_storm,
            self._detect_save_layer_bleed,
            self._detect_shader_jank,
            self._detect_intrinsic_layout,
        )

    # ── Public API ───────────────────────────────────────────────────────

    def analyze(self, session: ScreenSession) -> list[PerformanceInsight]:
        """Run every detector against *session*.

        Returns an empty list for open sessions and sessions without
        frames: there is not enough data to judge either.
        """
        if session.is_active or session.frame_count == 0:
            return []

        insights: list[PerformanceInsight] = []
        for detector in self._detectors:
            insight = detector(session)
            if insight is not None:
                insights.append(insight)
        return insights

    # ── Frame detectors ──────────────────────────────────────────────────

    @staticmethod
    def _detect_excessive_jank(session: ScreenSession) -> PerformanceInsight | None:
        jank_percentage = session.jank_percentage
        if jank_percentage < JANK_WARNING_PERCENT:
            return None

        return PerformanceInsight(
            type=InsightType.EXCESSIVE_JANK.value,
            title="Excessive Frame Jank",
            description=(
                f"{jank_percentage:.1f}% of frames exceeded the 16.67ms target. "
                "This results in visible stuttering and poor user experience."
            ),
            suggestions=[
                "Profile the screen to identify expensive operations",
                "Move heavy computations to background isolates or workers",
                "Reduce widget tree complexity",
                "Use const constructors where possible",
            ],
            severity=(
                Severity.CRITICAL if jank_percentage >= JANK_CRITICAL_PERCENT
                else Severity.WARNING
            ),
            metadata={
                "jankPercentage": jank_percentage,
                "jankyFrames": session.janky_frame_count,
                "totalFrames": session.frame_count,
            },
        )

    @staticmethod
    def _detect_high_build_time(session: ScreenSession) -> PerformanceInsight | None:
        avg_build_ms = session.avg_build_ms
        if avg_build_ms <= PHASE_WARNING_MS:
            return None

        return PerformanceInsight(
            type=InsightType.HIGH_BUILD_TIME.value,
            title="High Average Build Time",
            description=(
                f"Average build time is {avg_build_ms:.2f}ms, "
                "which is above the recommended 8ms threshold for 60fps."
            ),
            suggestions=[
                "Push setState calls down to leaf widgets",
                "Use const constructors for static widgets",
                "Consider using Selector/Consumer to filter rebuilds",
                "Avoid building complex widgets inline",
            ],
            severity=Severity.CRITICAL if avg_build_ms > PHASE_CRITICAL_MS else Severity.WARNING,
            metadata={"avgBuildMs": avg_build_ms},
        )

    @staticmethod
    def _detect_high_raster_time(session: ScreenSession) -> PerformanceInsight | None:
        avg_raster_ms = session.avg_raster_ms
        if avg_raster_ms <= PHASE_WARNING_MS:
            return None

        return PerformanceInsight(
            type=InsightType.HIGH_RASTER_TIME.value,
            title="High Average Raster Time",
            description=(
                f"Average raster time is {avg_raster_ms:.2f}ms, "
                "indicating GPU-intensive rendering operations."
            ),
            suggestions=[
                "Avoid Opacity widgets with saveLayer",
                "Reduce use of shadows and complex clipping",
                "Use RepaintBoundary to cache static subtrees",
                "Consider simplifying visual effects",
            ],
            severity=Severity.CRITICAL if avg_raster_ms > PHASE_CRITICAL_MS else Severity.WARNING,
            metadata={"avgRasterMs": avg_raster_ms},
        )

    @staticmethod
    def _detect_build_storm(session: ScreenSession) -> PerformanceInsight | None:
        frames = session.frame_metrics
        if len(frames) < BUILD_STORM_MIN_FRAMES:
            return None

        avg_build_ms = session.avg_build_ms
        storm_frames = sum(
            1 for f in frames if f.build_duration_ms > avg_build_ms * BUILD_STORM_FACTOR
        )
        if storm_frames <= len(frames) * BUILD_STORM_SHARE:
            return None

        return PerformanceInsight(
            type=InsightType.BUILD_STORM.value,
            title="Build Storm Detected",
            description=(
                f"{storm_frames} frames had build times 3x higher than average. "
                "This suggests excessive widget rebuilding in response to state changes."
            ),
            suggestions=[
                "Review setState() calls for over-reaching scope",
                "Consider using ValueNotifier/ValueListenableBuilder",
                "Break large widgets into smaller, focused components",
                "Use keys judiciously to preserve widget state",
            ],
            severity=Severity.WARNING,
            metadata={"stormFrames": storm_frames, "avgBuildMs": avg_build_ms},
        )

    # ── Timeline detectors ───────────────────────────────────────────────

    @staticmethod
    def _detect_save_layer_bleed(session: ScreenSession) -> PerformanceInsight | None:
        count = _count_matching(
            session.timeline_events,
            lambda name: any(marker in name for marker in SAVE_LAYER_MARKERS),
        )
        if count == 0:
            return None

        return PerformanceInsight(
            type=InsightType.SAVE_LAYER_BLEED.value,
            title="SaveLayer Operations Detected",
            description=(
                f"Detected {count} saveLayer operations. "
                "Each saveLayer forces GPU to switch render targets, causing high raster costs."
            ),
            suggestions=[
                "Replace Opacity with color alpha (e.g., Color.withOpacity)",
                "Use FadeInImage for image transitions",
                "Avoid ShaderMask where possible",
                "Wrap static subtrees in RepaintBoundary to cache",
            ],
            severity=Severity.CRITICAL if count > SAVE_LAYER_CRITICAL_COUNT else Severity.WARNING,
            metadata={"saveLayerCount": count},
        )

    @staticmethod
    def _detect_shader_jank(session: ScreenSession) -> PerformanceInsight | None:
        count = _count_matching(
            session.timeline_events,
            lambda name: any(marker in name for marker in SHADER_MARKERS),
        )
        if count == 0:
            return None

        return PerformanceInsight(
            type=InsightType.SHADER_JANK.value,
            title="Shader Compilation Jank",
            description=(
                "Shader compilation detected. "
                "This causes significant jank on first run of animations."
            ),
            suggestions=[
                "Use --cache-sksl flag during profiling to capture shaders",
                "Pre-warm shaders on app startup",
                "Consider Impeller renderer (eliminates shader jank)",
                "Simplify complex shader operations",
            ],
            severity=Severity.WARNING,
            metadata={"shaderEventCount": count},
        )

    @staticmethod
    def _detect_intrinsic_layout(session: ScreenSession) -> PerformanceInsight | None:
        count = _count_matching(
            session.timeline_events,
            lambda name: INTRINSIC_MARKER in name.lower(),
        )
        if count == 0:
            return None

        return PerformanceInsight(
            type=InsightType.INTRINSIC_LAYOUT.value,
            title="Intrinsic Layout Operations",
            description=(
                "IntrinsicWidth/IntrinsicHeight widgets detected. "
                "These force multiple layout passes, turning O(N) into O(N²)."
            ),
            suggestions=[
                "Avoid IntrinsicHeight/Width in lists or deep trees",
                "Use Flex, Expanded, or fixed constraints instead",
                "Pre-compute sizes if possible",
                "Consider CustomSingleChildLayout for complex cases",
            ],
            severity=Severity.WARNING,
            metadata={"intrinsicEventCount": count},
        )


def _count_matching(
    events: Iterable[dict[str, Any]],
    predicate: Callable[[str], bool],
) -> int:
    """Count timeline events whose string ``name`` satisfies *predicate*."""
    count = 0
    for event in events:
        name = event.get("name")
        if isinstance(name, str) and predicate(name):
            count += 1
    return count
