"""Tests for the FrameTimingCollector."""

from __future__ import annotations

from screenflow.domain.frame import FrameMetric
from screenflow.instrumentation.collector import BATCH_SIZE, FrameTimingCollector
from screenflow.instrumentation.host import FrameTiming, ManualTimingsSource
from screenflow.instrumentation.transport import RecordingSink

BATCH_KIND = "screenflow:frame_batch"


def _timings(count: int, total_micros: int = 10_000) -> list[FrameTiming]:
    return [
        FrameTiming(
            build_duration_micros=total_micros // 2,
            raster_duration_micros=total_micros // 2,
            total_span_micros=total_micros,
        )
        for _ in range(count)
    ]


def _collector(**kw) -> tuple[FrameTimingCollector, ManualTimingsSource, RecordingSink]:
    source = ManualTimingsSource()
    sink = RecordingSink()
    collector = FrameTimingCollector(source, sink=sink, clock=lambda: 777, **kw)
    return collector, source, sink


class TestFrameTimingCollector:
    def test_start_subscribes_once(self) -> None:
        collector, source, sink = _collector()
        collector.start()
        collector.start()
        assert source.subscriber_count == 1
        assert collector.is_collecting
        assert sink.kinds() == ["screenflow:collector_start"]
        assert sink.events[0][1] == {"timestamp": 777}

    def test_stop_when_stopped_is_noop(self) -> None:
        collector, _, sink = _collector()
        collector.stop()
        assert sink.events == []

    def test_batch_flushes_exactly_at_batch_size(self) -> None:
        batches: list[list[FrameMetric]] = []
        collector, source, sink = _collector(on_batch_sent=batches.append)
        collector.start()

        source.report(_timings(BATCH_SIZE - 1))
        assert sink.of_kind(BATCH_KIND) == []
        assert collector.buffered_count == BATCH_SIZE - 1

        source.report(_timings(1))
        assert len(batches) == 1
        assert len(batches[0]) == BATCH_SIZE
        assert collector.buffered_count == 0

        payload = sink.of_kind(BATCH_KIND)[0]
        assert payload["frameCount"] == BATCH_SIZE
        assert payload["timestamp"] == 777
        assert payload["frames"][0]["frameNumber"] == 1

    def test_stop_flushes_partial_buffer(self) -> None:
        collector, source, sink = _collector()
        collector.start()
        source.report(_timings(BATCH_SIZE + 7))
        collector.stop()

        batches = sink.of_kind(BATCH_KIND)
        assert [b["frameCount"] for b in batches] == [BATCH_SIZE, 7]
        assert sink.kinds()[-1] == "screenflow:collector_stop"
        assert sink.events[-1][1] == {"timestamp": 777, "totalFrames": BATCH_SIZE + 7}
        assert source.subscriber_count == 0

    def test_manual_flush(self) -> None:
        collector, source, sink = _collector()
        collector.start()
        source.report(_timings(3))
        collector.flush()
        collector.flush()
        assert [b["frameCount"] for b in sink.of_kind(BATCH_KIND)] == [3]

    def test_frame_numbers_have_no_gaps_across_batches(self) -> None:
        collector, source, sink = _collector()
        collector.start()
        for chunk in (7, 30, 1, 45):
            source.report(_timings(chunk))
        collector.stop()

        numbers = [f["frameNumber"] for b in sink.of_kind(BATCH_KIND) for f in b["frames"]]
        assert numbers == list(range(1, 84))
        assert collector.frame_count == 83

    def test_numbering_continues_after_restart(self) -> None:
        seen: list[int] = []
        collector, source, _ = _collector(on_frame_metric=lambda m: seen.append(m.frame_number))
        collector.start()
        source.report(_timings(2))
        collector.stop()
        collector.start()
        source.report(_timings(2))
        assert seen == [1, 2, 3, 4]

    def test_frames_after_stop_are_not_collected(self) -> None:
        collector, source, _ = _collector()
        collector.start()
        collector.stop()
        source.report(_timings(5))
        assert collector.frame_count == 0

    def test_reset_zeroes_counter(self) -> None:
        collector, source, sink = _collector()
        collector.start()
        source.report(_timings(4))
        collector.reset()
        assert collector.frame_count == 0
        assert collector.buffered_count == 0
        assert not collector.is_collecting
        assert [b["frameCount"] for b in sink.of_kind(BATCH_KIND)] == [4]

        collector.start()
        source.report(_timings(1))
        collector.flush()
        assert sink.of_kind(BATCH_KIND)[-1]["frames"][0]["frameNumber"] == 1

    def test_metric_fields_come_from_timing(self) -> None:
        metrics: list[FrameMetric] = []
        collector, source, _ = _collector(on_frame_metric=metrics.append)
        collector.start()
        source.report([FrameTiming(3_000, 9_000, 17_000)])
        metric = metrics[0]
        assert metric.timestamp_micros == 777
        assert metric.build_duration_micros == 3_000
        assert metric.raster_duration_micros == 9_000
        assert metric.total_duration_micros == 17_000
        assert metric.is_janky
