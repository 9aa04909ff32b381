"""ScreenSession: one continuous period during which a route is on screen.

A session is opened when a route becomes current and sealed exactly once
when that route is popped, removed or replaced.  While open it accumulates
frame metrics in arrival order.  Once sealed its frame metrics are frozen;
only the enrichment fields (CPU profile, memory stats, timeline events and
insights) may still be populated.

Thread-safety note:
    Sessions are mutated only by the component holding the active-session
    reference (the lifecycle tracker in-process, the remote session manager
    on the observer side).  They are not themselves locked.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from screenflow.domain.aggregate import FrameMetricsAggregate
from screenflow.domain.frame import FrameMetric
from screenflow.domain.insight import PerformanceInsight
from screenflow.foundation.identifiers import new_session_id


class SessionStateError(Exception):
    """Raised when a session is mutated in a way its lifecycle forbids."""


class SessionRecord(BaseModel):
    """Serialized shape of one session, validated strictly on import.

    Scalars are not coerced: a null id, a fractional timestamp or a
    string popup flag is rejected rather than silently converted.
    """

    session_id: StrictStr = Field(..., min_length=1)
    route_name: StrictStr
    start_time_micros: StrictInt
    end_time_micros: Optional[StrictInt] = None
    is_popup: StrictBool = False
    previous_route: Optional[StrictStr] = None
    frame_metrics: Optional[list[FrameMetric]] = None
    cpu_profile: Optional[dict[str, Any]] = None
    memory_stats: Optional[dict[str, Any]] = None
    timeline_events: Optional[list[dict[str, Any]]] = None
    insights: Optional[list[PerformanceInsight]] = None

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class ScreenSession:
    """A mutable, single-writer screen session record."""

    __slots__ = (
        "_session_id",
        "route_name",
        "start_time_micros",
        "_end_time_micros",
        "is_popup",
        "previous_route",
        "_frame_metrics",
        "timeline_events",
        "insights",
        "cpu_profile",
        "memory_stats",
    )

    def __init__(
        self,
        route_name: str,
        start_time_micros: int,
        session_id: str | None = None,
        is_popup: bool = False,
        previous_route: str | None = None,
    ) -> None:
        self._session_id: str = session_id or new_session_id()
        self.route_name: str = route_name
        self.start_time_micros: int = start_time_micros
        self._end_time_micros: Optional[int] = None
        self.is_popup: bool = is_popup
        self.previous_route: Optional[str] = previous_route
        self._frame_metrics: list[FrameMetric] = []
        self.timeline_events: list[dict[str, Any]] = []
        self.insights: list[PerformanceInsight] = []
        self.cpu_profile: Optional[dict[str, Any]] = None
        self.memory_stats: Optional[dict[str, Any]] = None

    # ── Identity & lifecycle ─────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def end_time_micros(self) -> Optional[int]:
        return self._end_time_micros

    @property
    def is_active(self) -> bool:
        return self._end_time_micros is None

    def end(self, end_time_micros: int) -> None:
        """Seal the session.  Allowed exactly once."""
        if self._end_time_micros is not None:
            raise SessionStateError(f"Session {self._session_id} already ended")
        if end_time_micros < self.start_time_micros:
            raise SessionStateError(
                f"End time {end_time_micros} precedes start time {self.start_time_micros}"
            )
        self._end_time_micros = end_time_micros

    # ── Frames ───────────────────────────────────────────────────────────

    def add_frame_metric(self, metric: FrameMetric) -> None:
        """Append a frame metric.  Only allowed while the session is open."""
        if self._end_time_micros is not None:
            raise SessionStateError(
                f"Cannot add frames to ended session {self._session_id}"
            )
        self._frame_metrics.append(metric)

    @property
    def frame_metrics(self) -> list[FrameMetric]:
        """Read-only view of frame metrics in arrival order."""
        return list(self._frame_metrics)

    @property
    def frame_count(self) -> int:
        return len(self._frame_metrics)

    # ── Derived metrics ──────────────────────────────────────────────────

    @property
    def duration_micros(self) -> Optional[int]:
        """Elapsed microseconds, or None while the session is still open."""
        if self._end_time_micros is None:
            return None
        return self._end_time_micros - self.start_time_micros

    @property
    def duration_ms(self) -> Optional[float]:
        micros = self.duration_micros
        if micros is None:
            return None
        return micros / 1000.0

    @property
    def avg_build_ms(self) -> float:
        if not self._frame_metrics:
            return 0.0
        return sum(m.build_duration_ms for m in self._frame_metrics) / len(self._frame_metrics)

    @property
    def avg_raster_ms(self) -> float:
        if not self._frame_metrics:
            return 0.0
        return sum(m.raster_duration_ms for m in self._frame_metrics) / len(self._frame_metrics)

    @property
    def janky_frame_count(self) -> int:
        return sum(1 for m in self._frame_metrics if m.is_janky)

    @property
    def jank_percentage(self) -> float:
        """Share of janky frames, 0–100."""
        if not self._frame_metrics:
            return 0.0
        return self.janky_frame_count / len(self._frame_metrics) * 100

    @property
    def aggregate(self) -> Optional[FrameMetricsAggregate]:
        if not self._frame_metrics:
            return None
        return FrameMetricsAggregate.from_metrics(self._frame_metrics)

    # ── Serialization ────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        """Full JSON-compatible form used by export.

        ``aggregate`` is included for readers of the export file; it is
        derived and therefore ignored by :meth:`from_dict`.
        """
        aggregate = self.aggregate
        return {
            "sessionId": self._session_id,
            "routeName": self.route_name,
            "startTimeMicros": self.start_time_micros,
            "endTimeMicros": self._end_time_micros,
            "isPopup": self.is_popup,
            "previousRoute": self.previous_route,
            "frameMetrics": [m.to_dict() for m in self._frame_metrics],
            "cpuProfile": self.cpu_profile,
            "memoryStats": self.memory_stats,
            "timelineEvents": [dict(e) for e in self.timeline_events],
            "insights": [i.to_dict() for i in self.insights],
            "aggregate": aggregate.to_dict() if aggregate else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScreenSession:
        """Rebuild a session from :meth:`to_dict` output.

        Raises:
            pydantic.ValidationError: on a malformed record.
            SessionStateError: if the end time precedes the start time.
        """
        record = SessionRecord.model_validate(data)
        session = cls(
            session_id=record.session_id,
            route_name=record.route_name,
            start_time_micros=record.start_time_micros,
            is_popup=record.is_popup,
            previous_route=record.previous_route,
        )
        session._frame_metrics.extend(record.frame_metrics or [])
        if record.end_time_micros is not None:
            session.end(record.end_time_micros)
        session.timeline_events = [dict(e) for e in record.timeline_events or []]
        session.insights = list(record.insights or [])
        session.cpu_profile = record.cpu_profile
        session.memory_stats = record.memory_stats
        return session

    def summary(self) -> dict:
        """Lightweight summary suitable for listings and logging."""
        return {
            "session_id": self._session_id,
            "route_name": self.route_name,
            "is_popup": self.is_popup,
            "is_active": self.is_active,
            "start_time_micros": self.start_time_micros,
            "duration_micros": self.duration_micros,
            "frame_count": self.frame_count,
            "jank_percentage": round(self.jank_percentage, 2),
            "insight_count": len(self.insights),
        }

    # ── Dunder ───────────────────────────────────────────────────────────

    def __repr__(self) -> str:
        return (
            f"ScreenSession(id={self._session_id}, "
            f"route={self.route_name!r}, "
            f"frames={self.frame_count}, "
            f"active={self.is_active})"
        )
