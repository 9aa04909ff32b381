"""TelemetryCorrelator: enrich a sealed session with profiling data.

For each completed session the correlator asks the profiling backend for
CPU samples covering exactly the session's window and for the full
timeline snapshot, then runs the insight engine.  Backend trouble never
propagates: a failed or absent response leaves the matching field empty.
There is no retry and no internal timeout; a hung backend stalls only
the enrichment of the session being correlated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from screenflow.core.insight_engine import InsightEngine
from screenflow.domain.session import ScreenSession
from screenflow.observer.profiling import FetchResult, FetchStatus, ProfilingBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorrelationOutcome:
    """What the correlator managed to attach to one session."""

    session_id: str
    cpu_status: FetchStatus
    timeline_status: FetchStatus
    timeline_event_count: int
    insight_count: int

    @property
    def complete(self) -> bool:
        return self.cpu_status is FetchStatus.OK and self.timeline_status is FetchStatus.OK


class TelemetryCorrelator:
    """Pulls CPU and timeline telemetry for sealed sessions.

    Args:
        backend: The profiling backend to query.
        insight_engine: Engine run once telemetry has been attached.
        isolate_id: Isolate passed to CPU-sample requests.
        on_correlated: Invoked once per session after enrichment.
    """

    def __init__(
        self,
        backend: ProfilingBackend,
        insight_engine: InsightEngine | None = None,
        isolate_id: str | None = None,
        on_correlated: Callable[[ScreenSession], None] | None = None,
    ) -> None:
        self._backend = backend
        self._engine = insight_engine or InsightEngine()
        self._isolate_id = isolate_id
        self._on_correlated = on_correlated

    def set_listener(self, on_correlated: Callable[[ScreenSession], None] | None) -> None:
        self._on_correlated = on_correlated

    async def correlate(self, session: ScreenSession) -> Optional[CorrelationOutcome]:
        """Enrich *session* in place.  Returns None for open sessions."""
        duration = session.duration_micros
        if duration is None:
            logger.debug("Session %s still open, skipping correlation", session.session_id)
            return None

        cpu = await self._fetch(
            "cpu samples",
            session,
            lambda: self._backend.get_cpu_samples(
                self._isolate_id, session.start_time_micros, duration
            ),
        )
        if cpu.has_data:
            session.cpu_profile = cpu.data

        timeline = await self._fetch("timeline", session, self._backend.get_vm_timeline)
        timeline_count = 0
        if timeline.has_data:
            trace_events = timeline.data.get("traceEvents") or []
            session.timeline_events = [dict(e) for e in trace_events if isinstance(e, dict)]
            timeline_count = len(session.timeline_events)

        session.insights = self._engine.analyze(session)
        logger.info(
            "Correlated session %s: cpu=%s timeline=%s (%d events), %d insight(s)",
            session.session_id,
            cpu.status.value,
            timeline.status.value,
            timeline_count,
            len(session.insights),
        )

        if self._on_correlated is not None:
            self._on_correlated(session)

        return CorrelationOutcome(
            session_id=session.session_id,
            cpu_status=cpu.status,
            timeline_status=timeline.status,
            timeline_event_count=timeline_count,
            insight_count=len(session.insights),
        )

    @staticmethod
    async def _fetch(what: str, session: ScreenSession, request) -> FetchResult:
        try:
            result = await request()
        except Exception as exc:
            logger.warning(
                "Fetching %s for session %s failed: %s", what, session.session_id, exc
            )
            return FetchResult.failed(str(exc))
        if result.status is FetchStatus.FAILED:
            logger.warning(
                "Backend could not provide %s for session %s: %s",
                what,
                session.session_id,
                result.error,
            )
        return result
