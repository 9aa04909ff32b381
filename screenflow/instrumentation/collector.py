"""Frame Timing Collector: batches per-frame timings into events.

The collector subscribes to the host's timings source, numbers every frame
sequentially for the lifetime of the collector (numbers are never reused
and never reset between sessions), and posts ``frame_batch`` events of
:data:`BATCH_SIZE` frames.  Stopping force-flushes the partial buffer so no
frame is ever dropped.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from screenflow.domain.enums import EventKind
from screenflow.domain.events import (
    DEFAULT_EVENT_PREFIX,
    CollectorEvent,
    FrameBatchEvent,
    event_name,
    to_payload,
)
from screenflow.domain.frame import FrameMetric
from screenflow.foundation.clock import timeline_now
from screenflow.instrumentation.host import FrameTiming, TimingsCallback, TimingsSource
from screenflow.instrumentation.transport import EventSink, NullSink

logger = logging.getLogger(__name__)

BATCH_SIZE = 30


class FrameTimingCollector:
    """Converts raw frame timings into batched FrameMetric events.

    Args:
        source: The host rendering pipeline's timings notification.
        sink: Where batch and collector events are posted.
        on_frame_metric: Invoked for each metric as it is built.
        on_batch_sent: Invoked with each flushed batch.
        clock: Monotonic microsecond clock used to stamp frames.
        event_prefix: Event-kind namespace.
    """

    def __init__(
        self,
        source: TimingsSource,
        sink: EventSink | None = None,
        on_frame_metric: Callable[[FrameMetric], None] | None = None,
        on_batch_sent: Callable[[list[FrameMetric]], None] | None = None,
        clock: Callable[[], int] | None = None,
        event_prefix: str = DEFAULT_EVENT_PREFIX,
    ) -> None:
        self._source = source
        self._sink = sink or NullSink()
        self._on_frame_metric = on_frame_metric
        self._on_batch_sent = on_batch_sent
        self._clock = clock or timeline_now
        self._prefix = event_prefix
        self._callback: Optional[TimingsCallback] = None
        self._buffer: list[FrameMetric] = []
        self._frame_counter = 0

    @property
    def is_collecting(self) -> bool:
        return self._callback is not None

    @property
    def frame_count(self) -> int:
        return self._frame_counter

    @property
    def buffered_count(self) -> int:
        return len(self._buffer)

    # ── Control ──────────────────────────────────────────────────────────

    def start(self) -> None:
        """Subscribe to frame timings.  No-op if already collecting."""
        if self._callback is not None:
            return

        self._callback = self._handle_timings
        self._source.add_timings_callback(self._callback)
        self._sink.post_event(
            event_name(EventKind.COLLECTOR_START, self._prefix),
            to_payload(CollectorEvent(timestamp=self._clock()), exclude_none=True),
        )
        logger.info("Frame collection started")

    def stop(self) -> None:
        """Unsubscribe and flush the partial buffer.  No-op if stopped."""
        if self._callback is None:
            return

        self._source.remove_timings_callback(self._callback)
        self._callback = None
        self.flush()
        self._sink.post_event(
            event_name(EventKind.COLLECTOR_STOP, self._prefix),
            to_payload(CollectorEvent(
                timestamp=self._clock(),
                total_frames=self._frame_counter,
            )),
        )
        logger.info("Frame collection stopped after %d frames", self._frame_counter)

    def reset(self) -> None:
        """Stop, discard buffered state and restart numbering from zero."""
        self.stop()
        self._buffer.clear()
        self._frame_counter = 0

    def flush(self) -> None:
        """Post whatever is buffered as one batch."""
        if not self._buffer:
            return

        batch = list(self._buffer)
        self._buffer.clear()

        self._sink.post_event(
            event_name(EventKind.FRAME_BATCH, self._prefix),
            to_payload(FrameBatchEvent(
                timestamp=self._clock(),
                frame_count=len(batch),
                frames=batch,
            )),
        )
        logger.debug("Flushed batch of %d frames", len(batch))

        if self._on_batch_sent is not None:
            self._on_batch_sent(batch)

    # ── Timings callback ─────────────────────────────────────────────────

    def _handle_timings(self, timings: Sequence[FrameTiming]) -> None:
        now = self._clock()

        for timing in timings:
            self._frame_counter += 1
            metric = FrameMetric(
                timestamp_micros=now,
                build_duration_micros=timing.build_duration_micros,
                raster_duration_micros=timing.raster_duration_micros,
                total_duration_micros=timing.total_span_micros,
                frame_number=self._frame_counter,
            )

            self._buffer.append(metric)
            if self._on_frame_metric is not None:
                self._on_frame_metric(metric)

            if len(self._buffer) >= BATCH_SIZE:
                self.flush()
