"""Controlled enumerations for the screenflow domain."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """How urgently an insight should be acted upon."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class EventKind(str, Enum):
    """Event names carried over the transport, without the prefix."""

    SCREEN_START = "screen_start"
    SCREEN_END = "screen_end"
    FRAME_BATCH = "frame_batch"
    COLLECTOR_START = "collector_start"
    COLLECTOR_STOP = "collector_stop"


class InsightType(str, Enum):
    """Machine-stable tags for the anti-patterns the insight engine knows."""

    EXCESSIVE_JANK = "excessive_jank"
    HIGH_BUILD_TIME = "high_build_time"
    HIGH_RASTER_TIME = "high_raster_time"
    BUILD_STORM = "build_storm"
    SAVE_LAYER_BLEED = "save_layer_bleed"
    SHADER_JANK = "shader_jank"
    INTRINSIC_LAYOUT = "intrinsic_layout"
