"""Remote Session Manager: observer-side reconstruction of screen sessions.

Design notes:
    - Events arrive over the transport as (kind, data) pairs.  Kinds outside
      the configured prefix are ignored.
    - Delivery may duplicate events.  A repeated ``screen_start`` for a known
      session id only re-points the active reference; a repeated
      ``screen_end`` for an already sealed session is ignored.
    - A ``screen_end`` for an unknown session id means start events were
      lost or ids were corrupted.  That is raised as UnknownSessionError,
      never dropped.
    - Frame batches with no active session are dropped, not buffered.
    - Handlers are synchronous and run to completion on the event loop, so
      no lock is needed.  The only suspension point is telemetry
      correlation, which runs as a background task per sealed session.
      State changes and notifications happen before that task is
      scheduled, so a missing event loop fails after a consistent update.
    - Start/end changes notify listeners immediately.  Frame batches use a
      throttled notifier so bursts coalesce into one trailing update.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from screenflow.core.correlator import TelemetryCorrelator
from screenflow.domain.enums import EventKind
from screenflow.domain.events import (
    DEFAULT_EVENT_PREFIX,
    CollectorEvent,
    EventEnvelope,
    FrameBatchEvent,
    ScreenEndEvent,
    ScreenStartEvent,
    parse_event_name,
)
from screenflow.domain.session import ScreenSession
from screenflow.observer.notifier import ThrottledNotifier
from screenflow.observer.profiling import NullProfilingBackend
from screenflow.store.exchange import export_sessions, import_sessions

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class UnknownSessionError(Exception):
    """Raised when an end event references a session that was never started."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class RemoteSessionManager:
    """Rebuilds session records from the instrumentation event stream.

    Args:
        correlator: Enriches sealed sessions; defaults to one backed by
            :class:`NullProfilingBackend` (insights only, no telemetry).
        event_prefix: Event-kind namespace to accept.
        throttle_interval: Seconds a frame-batch notification window stays open.
    """

    def __init__(
        self,
        correlator: TelemetryCorrelator | None = None,
        event_prefix: str = DEFAULT_EVENT_PREFIX,
        throttle_interval: float = 0.1,
    ) -> None:
        self._prefix = event_prefix
        self._sessions: list[ScreenSession] = []
        self._by_id: dict[str, ScreenSession] = {}
        self._active: Optional[ScreenSession] = None
        self._baselines: list[ScreenSession] = []
        self._listeners: list[Listener] = []
        self._notifier = ThrottledNotifier(self._notify_listeners, throttle_interval)
        self._correlator = correlator or TelemetryCorrelator(NullProfilingBackend())
        self._correlator.set_listener(self._on_session_correlated)
        self._tasks: set[asyncio.Task] = set()

    # ── Event ingestion ──────────────────────────────────────────────────

    def handle_envelope(self, raw: dict[str, Any]) -> bool:
        """Validate a transport envelope and dispatch it."""
        envelope = EventEnvelope.model_validate(raw)
        return self.handle_event(envelope.kind, envelope.data)

    def handle_event(self, kind: str, data: dict[str, Any]) -> bool:
        """Dispatch one event.  Returns False if *kind* is not ours.

        Raises:
            UnknownSessionError: ``screen_end`` for a session never started.
            pydantic.ValidationError: malformed payload.
        """
        event_kind = parse_event_name(kind, self._prefix)
        if event_kind is None:
            logger.debug("Ignoring foreign event %s", kind)
            return False

        if event_kind is EventKind.SCREEN_START:
            self._handle_screen_start(ScreenStartEvent.model_validate(data))
        elif event_kind is EventKind.SCREEN_END:
            self._handle_screen_end(ScreenEndEvent.model_validate(data))
        elif event_kind is EventKind.FRAME_BATCH:
            self._handle_frame_batch(FrameBatchEvent.model_validate(data))
        else:
            collector = CollectorEvent.model_validate(data)
            logger.info(
                "Collector %s at %d (total frames: %s)",
                "started" if event_kind is EventKind.COLLECTOR_START else "stopped",
                collector.timestamp,
                collector.total_frames,
            )
        return True

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def sessions(self) -> list[ScreenSession]:
        """All sessions, open and sealed, in start order."""
        return list(self._sessions)

    @property
    def completed_sessions(self) -> list[ScreenSession]:
        return [s for s in self._sessions if not s.is_active]

    @property
    def active_session(self) -> Optional[ScreenSession]:
        return self._active

    @property
    def baselines(self) -> list[ScreenSession]:
        return list(self._baselines)

    @property
    def pending_correlations(self) -> int:
        return len(self._tasks)

    def get(self, session_id: str) -> Optional[ScreenSession]:
        return self._by_id.get(session_id)

    def find(self, session_id: str) -> Optional[ScreenSession]:
        """Look up *session_id* among live sessions, then imported baselines."""
        session = self._by_id.get(session_id)
        if session is not None:
            return session
        return next((b for b in self._baselines if b.session_id == session_id), None)

    # ── Listeners ────────────────────────────────────────────────────────

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    # ── Maintenance ──────────────────────────────────────────────────────

    def clear_sessions(self) -> None:
        self._sessions.clear()
        self._by_id.clear()
        self._active = None
        self._notify_listeners()

    def export_sessions(
        self,
        app_id: str | None = None,
        framework_version: str | None = None,
        device: str | None = None,
    ) -> dict[str, Any]:
        """Export sealed sessions with a metadata envelope."""
        return export_sessions(
            self.completed_sessions,
            app_id=app_id,
            framework_version=framework_version,
            device=device,
        )

    def import_baselines(self, payload: Any) -> list[ScreenSession]:
        """Load an export as comparison baselines, replacing previous ones.

        Raises:
            InvalidExportFormatError: If the payload is not a valid export.
        """
        self._baselines = import_sessions(payload)
        self._notify_listeners()
        return list(self._baselines)

    async def drain(self) -> None:
        """Wait for every in-flight correlation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        self._notifier.cancel()

    # ── Handlers ─────────────────────────────────────────────────────────

    def _handle_screen_start(self, event: ScreenStartEvent) -> None:
        existing = self._by_id.get(event.session_id)
        if existing is not None:
            logger.debug("Duplicate screen_start for %s", event.session_id)
            self._active = existing
            self._notify_listeners()
            return

        session = ScreenSession(
            session_id=event.session_id,
            route_name=event.route,
            start_time_micros=event.timestamp,
            is_popup=event.is_popup,
            previous_route=event.previous_route,
        )
        self._sessions.append(session)
        self._by_id[session.session_id] = session
        self._active = session
        logger.info("Session %s opened for %s", session.session_id, session.route_name)
        self._notify_listeners()

    def _handle_screen_end(self, event: ScreenEndEvent) -> None:
        session = self._by_id.get(event.session_id)
        if session is None:
            logger.error("screen_end for unknown session %s", event.session_id)
            raise UnknownSessionError(event.session_id)

        if not session.is_active:
            logger.debug("Duplicate screen_end for %s", event.session_id)
            return

        session.end(event.timestamp)
        logger.info(
            "Session %s sealed for %s (%d µs, %d frames)",
            session.session_id,
            session.route_name,
            session.duration_micros,
            session.frame_count,
        )

        still_open = [s for s in self._sessions if s.is_active]
        self._active = still_open[-1] if still_open else None
        self._notify_listeners()

        self._schedule_correlation(session)

    def _handle_frame_batch(self, event: FrameBatchEvent) -> None:
        session = self._active
        if session is None or not session.is_active:
            logger.debug("Dropping batch of %d frames: no active session", len(event.frames))
            return

        for frame in event.frames:
            session.add_frame_metric(frame)
        self._notifier.schedule()

    # ── Internals ────────────────────────────────────────────────────────

    def _schedule_correlation(self, session: ScreenSession) -> None:
        """Start enrichment in the background.  Needs a running event loop."""
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._correlator.correlate(session))
        self._tasks.add(task)
        task.add_done_callback(self._on_correlation_done)

    def _on_correlation_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Telemetry correlation crashed: %s", exc, exc_info=exc)

    def _on_session_correlated(self, session: ScreenSession) -> None:
        self._notify_listeners()

    def _notify_listeners(self) -> None:
        for listener in list(self._listeners):
            listener()
