"""Host collaborator contracts.

The host UI framework owns the navigation stack and the rendering
pipeline.  Instrumentation only needs a narrow view of each:

    - Routes expose their settings (optional name and arguments) and
      whether they are popups (dialogs, sheets) rather than full screens.
    - A timings source delivers per-frame build/raster durations to
      registered callbacks, in batches, on the host's event turn.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence


@dataclass(frozen=True)
class RouteSettings:
    name: str | None = None
    arguments: Any = None


class RouteLike(Protocol):
    """What the lifecycle tracker reads from a host route object."""

    settings: RouteSettings

    @property
    def is_popup(self) -> bool:
        ...


class Route:
    """A full-screen route."""

    def __init__(self, name: str | None = None, arguments: Any = None) -> None:
        self.settings = RouteSettings(name=name, arguments=arguments)

    @property
    def is_popup(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.settings.name!r})"


class PopupRoute(Route):
    """A dialog, sheet or menu drawn over another route."""

    @property
    def is_popup(self) -> bool:
        return True


def resolve_route_name(route: RouteLike) -> str:
    """Name a route: explicit name, then ``arguments["routeName"]``, then type#id."""
    settings = route.settings
    if settings.name:
        return settings.name

    arguments = settings.arguments
    if isinstance(arguments, dict) and arguments.get("routeName"):
        return str(arguments["routeName"])

    return f"{type(route).__name__}#{id(route):x}"


# ── Frame timings ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FrameTiming:
    """One raw timing sample as reported by the rendering pipeline."""

    build_duration_micros: int
    raster_duration_micros: int
    total_span_micros: int


TimingsCallback = Callable[[Sequence[FrameTiming]], None]


class TimingsSource(Protocol):
    """Per-frame timing notification of the host rendering pipeline."""

    def add_timings_callback(self, callback: TimingsCallback) -> None:
        ...

    def remove_timings_callback(self, callback: TimingsCallback) -> None:
        ...


class ManualTimingsSource:
    """A timings source driven by explicit :meth:`report` calls.

    Used by embedders that receive timings from elsewhere (log replay,
    a foreign runtime bridge) and by tests.
    """

    def __init__(self) -> None:
        self._callbacks: list[TimingsCallback] = []

    def add_timings_callback(self, callback: TimingsCallback) -> None:
        self._callbacks.append(callback)

    def remove_timings_callback(self, callback: TimingsCallback) -> None:
        self._callbacks.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def report(self, timings: Sequence[FrameTiming]) -> None:
        """Deliver a batch of timings to every subscriber."""
        for callback in list(self._callbacks):
            callback(timings)
