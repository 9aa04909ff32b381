"""Wire payloads exchanged between instrumentation and the observer.

Each event travels as an envelope ``{"kind": "<prefix>:<event>", "data": {...}}``
with camelCase payload keys.  The models here validate payloads at the
observer boundary so the session manager never has to re-check fields.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from screenflow.domain.enums import EventKind
from screenflow.domain.frame import FrameMetric

DEFAULT_EVENT_PREFIX = "screenflow"

_WIRE_CONFIG = {
    "frozen": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
}


def event_name(kind: EventKind, prefix: str = DEFAULT_EVENT_PREFIX) -> str:
    """Return the fully-qualified event kind, e.g. ``screenflow:screen_start``."""
    return f"{prefix}:{kind.value}"


def parse_event_name(name: str, prefix: str = DEFAULT_EVENT_PREFIX) -> Optional[EventKind]:
    """Return the EventKind for *name*, or None if it is foreign or unknown."""
    head, sep, tail = name.partition(":")
    if not sep or head != prefix:
        return None
    try:
        return EventKind(tail)
    except ValueError:
        return None


class ScreenStartEvent(BaseModel):
    session_id: str = Field(..., min_length=1)
    route: str
    timestamp: int
    is_popup: bool = False
    previous_route: Optional[str] = None

    model_config = _WIRE_CONFIG


class ScreenEndEvent(BaseModel):
    session_id: str = Field(..., min_length=1)
    route: str
    timestamp: int
    duration_micros: Optional[int] = None
    frame_count: int = 0

    model_config = _WIRE_CONFIG


class FrameBatchEvent(BaseModel):
    timestamp: int
    frame_count: int
    frames: list[FrameMetric] = Field(default_factory=list)

    model_config = _WIRE_CONFIG


class CollectorEvent(BaseModel):
    """Payload of both ``collector_start`` and ``collector_stop``."""

    timestamp: int
    total_frames: Optional[int] = None

    model_config = _WIRE_CONFIG


class EventEnvelope(BaseModel):
    """One transport message."""

    kind: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


def to_payload(event: BaseModel, exclude_none: bool = False) -> dict[str, Any]:
    """Serialize a wire model to its camelCase JSON form."""
    return event.model_dump(by_alias=True, exclude_none=exclude_none)
