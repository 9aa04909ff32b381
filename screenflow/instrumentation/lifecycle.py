"""Navigation Lifecycle Tracker: turns route events into screen sessions.

Design notes:
    - Nested navigation (a dialog over a screen) is modelled with a stack of
      open sessions.  The top of the stack is the session frames belong to.
    - End events are matched to open sessions by route name + active
      status, scanning from the top.  Host route objects are not stable
      across the event boundary, so identity cannot be used.  Two open
      sessions sharing a route name therefore resolve LIFO: the most
      recently pushed one is closed first.
    - Pop/remove for a route that is not tracked (or already closed) is a
      silent no-op.
    - The tracker has no on/off state; it always listens.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional

from screenflow.domain.enums import EventKind
from screenflow.domain.events import (
    DEFAULT_EVENT_PREFIX,
    ScreenEndEvent,
    ScreenStartEvent,
    event_name,
    to_payload,
)
from screenflow.domain.frame import FrameMetric
from screenflow.domain.session import ScreenSession
from screenflow.foundation.clock import timeline_now
from screenflow.instrumentation.host import RouteLike, resolve_route_name
from screenflow.instrumentation.transport import EventSink, NullSink

logger = logging.getLogger(__name__)

SessionHook = Callable[[ScreenSession], None]


class SessionStack:
    """Ordered stack of open sessions, owned exclusively by the tracker."""

    def __init__(self) -> None:
        self._items: list[ScreenSession] = []

    def push(self, session: ScreenSession) -> None:
        self._items.append(session)

    def top(self) -> Optional[ScreenSession]:
        return self._items[-1] if self._items else None

    def remove_last_matching(
        self, predicate: Callable[[ScreenSession], bool]
    ) -> Optional[ScreenSession]:
        """Remove and return the top-most session satisfying *predicate*."""
        for index in range(len(self._items) - 1, -1, -1):
            if predicate(self._items[index]):
                return self._items.pop(index)
        return None

    def snapshot(self) -> list[ScreenSession]:
        """Bottom-to-top copy of the stack."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ScreenSession]:
        return iter(list(self._items))


class NavigationLifecycleTracker:
    """Observes route push/pop/replace/remove and emits session events.

    Args:
        sink: Where ``screen_start`` / ``screen_end`` events are posted.
        on_session_start: Hook invoked after a session opens.
        on_session_end: Hook invoked after a session is sealed.
        clock: Monotonic microsecond clock.
        event_prefix: Event-kind namespace.
    """

    def __init__(
        self,
        sink: EventSink | None = None,
        on_session_start: SessionHook | None = None,
        on_session_end: SessionHook | None = None,
        clock: Callable[[], int] | None = None,
        event_prefix: str = DEFAULT_EVENT_PREFIX,
    ) -> None:
        self._sink = sink or NullSink()
        self._on_session_start = on_session_start
        self._on_session_end = on_session_end
        self._clock = clock or timeline_now
        self._prefix = event_prefix
        self._active = SessionStack()
        self._completed: list[ScreenSession] = []

    # ── Host navigation signals ──────────────────────────────────────────

    def did_push(self, route: RouteLike, previous_route: RouteLike | None = None) -> ScreenSession:
        return self._start_session(route, previous_route)

    def did_pop(self, route: RouteLike, previous_route: RouteLike | None = None) -> Optional[ScreenSession]:
        return self._end_session(route)

    def did_remove(self, route: RouteLike, previous_route: RouteLike | None = None) -> Optional[ScreenSession]:
        return self._end_session(route)

    def did_replace(
        self,
        new_route: RouteLike | None = None,
        old_route: RouteLike | None = None,
    ) -> Optional[ScreenSession]:
        """End *old_route*'s session (if tracked), then open *new_route*'s."""
        if old_route is not None:
            self._end_session(old_route)
        if new_route is not None:
            return self._start_session(new_route, None)
        return None

    # ── Frames ───────────────────────────────────────────────────────────

    def add_frame_to_active_session(self, frame: FrameMetric) -> bool:
        """Attach *frame* to the top-of-stack session.

        Frames stamped before the session started belong to whatever was
        on screen earlier and arrived late; they are not attributed.
        Returns True if the frame was attached.
        """
        session = self._active.top()
        if session is None:
            return False
        if frame.timestamp_micros < session.start_time_micros:
            logger.debug(
                "Frame %d predates session %s, not attributed",
                frame.frame_number,
                session.session_id,
            )
            return False
        session.add_frame_metric(frame)
        return True

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def current_session(self) -> Optional[ScreenSession]:
        return self._active.top()

    @property
    def active_sessions(self) -> list[ScreenSession]:
        return self._active.snapshot()

    @property
    def completed_sessions(self) -> list[ScreenSession]:
        return list(self._completed)

    def clear_completed_sessions(self) -> None:
        self._completed.clear()

    def export_sessions(self) -> list[dict]:
        return [s.to_dict() for s in self._completed]

    # ── Internals ────────────────────────────────────────────────────────

    def _start_session(
        self, route: RouteLike, previous_route: RouteLike | None
    ) -> ScreenSession:
        now = self._clock()
        route_name = resolve_route_name(route)
        previous_name = resolve_route_name(previous_route) if previous_route is not None else None

        session = ScreenSession(
            route_name=route_name,
            start_time_micros=now,
            is_popup=route.is_popup,
            previous_route=previous_name,
        )
        self._active.push(session)

        self._sink.post_event(
            event_name(EventKind.SCREEN_START, self._prefix),
            to_payload(ScreenStartEvent(
                session_id=session.session_id,
                route=route_name,
                timestamp=now,
                is_popup=session.is_popup,
                previous_route=previous_name,
            )),
        )
        logger.info("Session %s started for %s", session.session_id, route_name)

        if self._on_session_start is not None:
            self._on_session_start(session)
        return session

    def _end_session(self, route: RouteLike) -> Optional[ScreenSession]:
        route_name = resolve_route_name(route)
        now = self._clock()

        session = self._active.remove_last_matching(
            lambda s: s.route_name == route_name and s.is_active
        )
        if session is None:
            logger.debug("No open session for %s, ignoring", route_name)
            return None

        session.end(now)
        self._completed.append(session)

        self._sink.post_event(
            event_name(EventKind.SCREEN_END, self._prefix),
            to_payload(ScreenEndEvent(
                session_id=session.session_id,
                route=route_name,
                timestamp=now,
                duration_micros=session.duration_micros,
                frame_count=session.frame_count,
            )),
        )
        logger.info(
            "Session %s ended for %s (%d µs, %d frames)",
            session.session_id,
            route_name,
            session.duration_micros,
            session.frame_count,
        )

        if self._on_session_end is not None:
            self._on_session_end(session)
        return session
