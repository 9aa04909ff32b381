"""Clock utilities.

Session and frame timestamps are monotonic microseconds, comparable only
within one process.  Export metadata uses UTC-aware wall-clock time.  This
module is the single source of "now" so tests can monkey-patch it trivially.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone


def timeline_now() -> int:
    """Return the monotonic clock in whole microseconds."""
    return time.monotonic_ns() // 1000


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)
