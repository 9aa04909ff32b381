"""Tests for the RemoteSessionManager."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic import ValidationError

from screenflow.core.correlator import TelemetryCorrelator
from screenflow.domain.frame import FrameMetric
from screenflow.observer.profiling import NullProfilingBackend
from screenflow.store.exchange import InvalidExportFormatError
from screenflow.store.session_manager import RemoteSessionManager, UnknownSessionError

from tests.test_correlator import _FakeBackend
from tests.test_frame import _frame


# ── Helpers ──────────────────────────────────────────────────────────────────


def _start(sid: str, route: str = "/home", ts: int = 0, **extra: Any) -> tuple[str, dict]:
    return "screenflow:screen_start", {"sessionId": sid, "route": route, "timestamp": ts, **extra}


def _end(sid: str, route: str = "/home", ts: int = 100) -> tuple[str, dict]:
    return "screenflow:screen_end", {"sessionId": sid, "route": route, "timestamp": ts}


def _batch(frames: list[FrameMetric], ts: int = 50) -> tuple[str, dict]:
    return "screenflow:frame_batch", {
        "timestamp": ts,
        "frameCount": len(frames),
        "frames": [f.to_dict() for f in frames],
    }


class _Listener:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


def _manager(**kw) -> RemoteSessionManager:
    kw.setdefault("throttle_interval", 0.05)
    return RemoteSessionManager(**kw)


# ── Tests ────────────────────────────────────────────────────────────────────


class TestEventHandling:
    @pytest.mark.asyncio
    async def test_start_batch_end_builds_session(self) -> None:
        manager = _manager()
        manager.handle_event(*_start("s1", ts=0, isPopup=True, previousRoute="/list"))
        manager.handle_event(*_batch([_frame(n=1), _frame(total_ms=20.0, n=2)]))
        manager.handle_event(*_end("s1", ts=100))

        session = manager.get("s1")
        assert session.route_name == "/home"
        assert session.is_popup
        assert session.previous_route == "/list"
        assert session.frame_count == 2
        assert session.duration_micros == 100
        assert manager.active_session is None
        assert manager.completed_sessions == [session]
        await manager.drain()
        manager.close()

    def test_foreign_kind_is_ignored(self) -> None:
        manager = _manager()
        assert not manager.handle_event("other:screen_start", {"sessionId": "x"})
        assert not manager.handle_event("screenflow:unknown", {})
        assert manager.sessions == []

    def test_envelope_dispatch(self) -> None:
        manager = _manager()
        kind, data = _start("s1")
        assert manager.handle_envelope({"kind": kind, "data": data})
        assert manager.active_session.session_id == "s1"

    def test_invalid_payload_raises_validation_error(self) -> None:
        manager = _manager()
        with pytest.raises(ValidationError):
            manager.handle_event("screenflow:screen_start", {"route": "/home"})

    def test_collector_events_are_accepted(self) -> None:
        manager = _manager()
        assert manager.handle_event("screenflow:collector_start", {"timestamp": 1})
        assert manager.handle_event("screenflow:collector_stop", {"timestamp": 2, "totalFrames": 40})
        assert manager.sessions == []

    def test_unknown_end_raises(self) -> None:
        manager = _manager()
        with pytest.raises(UnknownSessionError) as exc_info:
            manager.handle_event(*_end("ghost"))
        assert exc_info.value.session_id == "ghost"

    def test_duplicate_start_only_repoints_active(self) -> None:
        manager = _manager()
        manager.handle_event(*_start("s1", route="/home"))
        manager.handle_event(*_start("s2", route="/detail", ts=10))
        manager.handle_event(*_start("s1", route="/home"))

        assert [s.session_id for s in manager.sessions] == ["s1", "s2"]
        assert manager.active_session.session_id == "s1"

    @pytest.mark.asyncio
    async def test_duplicate_end_is_ignored(self) -> None:
        manager = _manager()
        manager.handle_event(*_start("s1"))
        manager.handle_event(*_end("s1", ts=100))
        manager.handle_event(*_end("s1", ts=500))
        assert manager.get("s1").end_time_micros == 100
        await manager.drain()
        manager.close()

    @pytest.mark.asyncio
    async def test_batch_without_active_session_is_dropped(self) -> None:
        manager = _manager()
        manager.handle_event(*_batch([_frame()]))
        manager.handle_event(*_start("s1"))
        manager.handle_event(*_end("s1"))
        manager.handle_event(*_batch([_frame()]))
        assert manager.get("s1").frame_count == 0
        await manager.drain()
        manager.close()

    @pytest.mark.asyncio
    async def test_active_falls_back_to_open_session(self) -> None:
        manager = _manager()
        manager.handle_event(*_start("home", route="/home", ts=0))
        manager.handle_event(*_start("dialog", route="/dialog", ts=10))
        manager.handle_event(*_end("dialog", route="/dialog", ts=20))

        assert manager.active_session.session_id == "home"
        manager.handle_event(*_batch([_frame(ts=30)]))
        assert manager.get("home").frame_count == 1
        await manager.drain()
        manager.close()


class TestCorrelation:
    @pytest.mark.asyncio
    async def test_sealed_session_is_enriched(self) -> None:
        manager = _manager(correlator=TelemetryCorrelator(_FakeBackend()))
        manager.handle_event(*_start("s1"))
        manager.handle_event(*_batch([_frame()]))
        manager.handle_event(*_end("s1"))
        assert manager.pending_correlations == 1

        await manager.drain()
        session = manager.get("s1")
        assert session.cpu_profile == {"sampleCount": 12}
        assert [i.type for i in session.insights] == ["save_layer_bleed"]
        assert manager.pending_correlations == 0
        manager.close()

    @pytest.mark.asyncio
    async def test_default_correlator_still_produces_insights(self) -> None:
        manager = _manager()
        manager.handle_event(*_start("s1"))
        manager.handle_event(*_batch([_frame(total_ms=30.0) for _ in range(5)]))
        manager.handle_event(*_end("s1"))
        await manager.drain()
        assert "excessive_jank" in [i.type for i in manager.get("s1").insights]
        manager.close()

    @pytest.mark.asyncio
    async def test_correlation_notifies_listeners(self) -> None:
        listener = _Listener()
        manager = _manager(correlator=TelemetryCorrelator(NullProfilingBackend()))
        manager.add_listener(listener)
        manager.handle_event(*_start("s1"))
        manager.handle_event(*_end("s1"))
        before = listener.calls
        await manager.drain()
        assert listener.calls == before + 1
        manager.close()


class TestNotifications:
    def test_start_notifies_immediately(self) -> None:
        listener = _Listener()
        manager = _manager()
        manager.add_listener(listener)
        manager.handle_event(*_start("s1"))
        assert listener.calls == 1

    @pytest.mark.asyncio
    async def test_frame_batches_are_throttled(self) -> None:
        listener = _Listener()
        manager = _manager()
        manager.handle_event(*_start("s1"))
        manager.add_listener(listener)

        for i in range(5):
            manager.handle_event(*_batch([_frame(n=i)]))
        assert listener.calls == 1

        await asyncio.sleep(0.15)
        assert listener.calls == 2
        manager.close()

    def test_end_without_event_loop_updates_state_first(self) -> None:
        listener = _Listener()
        manager = _manager()
        manager.handle_event(*_start("s1"))
        manager.add_listener(listener)

        with pytest.raises(RuntimeError):
            manager.handle_event(*_end("s1", ts=100))

        assert manager.get("s1").end_time_micros == 100
        assert manager.active_session is None
        assert listener.calls == 1
        assert manager.pending_correlations == 0

    def test_frame_batches_without_event_loop_notify_directly(self) -> None:
        listener = _Listener()
        manager = _manager()
        manager.handle_event(*_start("s1"))
        manager.add_listener(listener)

        manager.handle_event(*_batch([_frame(n=1)]))
        manager.handle_event(*_batch([_frame(n=2)]))

        assert manager.get("s1").frame_count == 2
        assert listener.calls == 2

    def test_removed_listener_is_not_called(self) -> None:
        listener = _Listener()
        manager = _manager()
        manager.add_listener(listener)
        manager.remove_listener(listener)
        manager.handle_event(*_start("s1"))
        assert listener.calls == 0


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_export_contains_only_sealed_sessions(self) -> None:
        manager = _manager()
        manager.handle_event(*_start("done", route="/a"))
        manager.handle_event(*_end("done", route="/a"))
        manager.handle_event(*_start("open", route="/b", ts=200))

        data = manager.export_sessions(app_id="com.example")
        assert [s["sessionId"] for s in data["sessions"]] == ["done"]
        assert data["meta"]["appId"] == "com.example"
        await manager.drain()
        manager.close()

    def test_clear_sessions(self) -> None:
        manager = _manager()
        manager.handle_event(*_start("s1"))
        manager.clear_sessions()
        assert manager.sessions == []
        assert manager.active_session is None
        assert manager.get("s1") is None

    def test_import_baselines_are_separate_from_live_sessions(self) -> None:
        manager = _manager()
        payload = {
            "meta": {"schemaVersion": "1.0"},
            "sessions": [{
                "sessionId": "base-1",
                "routeName": "/home",
                "startTimeMicros": 0,
                "endTimeMicros": 100,
                "isPopup": False,
                "frameMetrics": [],
            }],
        }
        baselines = manager.import_baselines(payload)

        assert [b.session_id for b in baselines] == ["base-1"]
        assert manager.sessions == []
        assert manager.get("base-1") is None
        assert manager.find("base-1") is baselines[0]

    def test_invalid_import_keeps_previous_baselines(self) -> None:
        manager = _manager()
        manager.import_baselines({"sessions": []})
        with pytest.raises(InvalidExportFormatError):
            manager.import_baselines({"meta": {"schemaVersion": "9.9"}, "sessions": []})
        assert manager.baselines == []
