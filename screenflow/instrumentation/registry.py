"""Session Registry: in-process composition root.

Wires the frame collector's per-frame callback into the lifecycle
tracker's active session and exposes a single on/off toggle over frame
capture.  Navigation tracking has no toggle; it always listens.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from screenflow.domain.events import DEFAULT_EVENT_PREFIX
from screenflow.domain.frame import FrameMetric
from screenflow.domain.session import ScreenSession
from screenflow.instrumentation.collector import FrameTimingCollector
from screenflow.instrumentation.host import TimingsSource
from screenflow.instrumentation.lifecycle import NavigationLifecycleTracker, SessionHook
from screenflow.instrumentation.transport import EventSink, NullSink
from screenflow.store.exchange import export_sessions

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Owns a lifecycle tracker and a frame collector and routes frames.

    Usage:
        registry = SessionRegistry(timings_source, sink=QueueSink())
        navigator.observers.append(registry.tracker)
        registry.start_collecting()
    """

    def __init__(
        self,
        timings_source: TimingsSource,
        sink: EventSink | None = None,
        on_session_start: SessionHook | None = None,
        on_session_end: SessionHook | None = None,
        on_frame_metric: Callable[[FrameMetric], None] | None = None,
        clock: Callable[[], int] | None = None,
        event_prefix: str = DEFAULT_EVENT_PREFIX,
    ) -> None:
        sink = sink or NullSink()
        self._on_frame_metric = on_frame_metric
        self._is_active = False

        self.tracker = NavigationLifecycleTracker(
            sink=sink,
            on_session_start=on_session_start,
            on_session_end=on_session_end,
            clock=clock,
            event_prefix=event_prefix,
        )
        self.collector = FrameTimingCollector(
            timings_source,
            sink=sink,
            on_frame_metric=self._route_frame,
            clock=clock,
            event_prefix=event_prefix,
        )

    # ── Control ──────────────────────────────────────────────────────────

    def start_collecting(self) -> None:
        if self._is_active:
            return
        self.collector.start()
        self._is_active = True

    def stop_collecting(self) -> None:
        if not self._is_active:
            return
        self.collector.stop()
        self._is_active = False

    def clear_sessions(self) -> None:
        self.tracker.clear_completed_sessions()

    def reset(self) -> None:
        self.stop_collecting()
        self.clear_sessions()
        self.collector.reset()

    def dispose(self) -> None:
        self.stop_collecting()

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def current_session(self) -> Optional[ScreenSession]:
        return self.tracker.current_session

    @property
    def completed_sessions(self) -> list[ScreenSession]:
        return self.tracker.completed_sessions

    @property
    def frame_count(self) -> int:
        return self.collector.frame_count

    def export_data(
        self,
        app_id: str | None = None,
        framework_version: str | None = None,
        device: str | None = None,
    ) -> dict:
        """Export completed sessions (never the open one) with metadata."""
        return export_sessions(
            self.tracker.completed_sessions,
            app_id=app_id,
            framework_version=framework_version,
            device=device,
            total_frames=self.frame_count,
        )

    # ── Internals ────────────────────────────────────────────────────────

    def _route_frame(self, metric: FrameMetric) -> None:
        self.tracker.add_frame_to_active_session(metric)
        if self._on_frame_metric is not None:
            self._on_frame_metric(metric)
