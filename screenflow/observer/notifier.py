"""Throttled change notification.

Frame batches can arrive many times a second; notifying listeners for
each one would churn every subscriber.  :class:`ThrottledNotifier` fires
immediately when idle, then holds a window open for ``interval`` seconds.
Requests inside the window coalesce into exactly one trailing
notification when it closes, so the latest state is always delivered.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ThrottledNotifier:
    """Timer-gated publish: a pending flag plus one scheduled re-check.

    Throttling needs a running asyncio event loop; without one every
    request notifies immediately.
    """

    def __init__(self, notify: Callable[[], None], interval: float = 0.1) -> None:
        self._notify = notify
        self._interval = interval
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending = False

    @property
    def window_open(self) -> bool:
        return self._timer is not None

    @property
    def pending(self) -> bool:
        return self._pending

    def schedule(self) -> None:
        if self._timer is not None:
            self._pending = True
            return

        self._notify()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to hold a window open; every request notifies directly.
            return
        self._timer = loop.call_later(self._interval, self._on_window_closed)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = False

    def _on_window_closed(self) -> None:
        self._timer = None
        if self._pending:
            self._pending = False
            logger.debug("Delivering coalesced notification")
            self._notify()
