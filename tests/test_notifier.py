"""Tests for the ThrottledNotifier."""

from __future__ import annotations

import asyncio

import pytest

from screenflow.observer.notifier import ThrottledNotifier


class _Counter:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


class TestThrottledNotifier:
    @pytest.mark.asyncio
    async def test_first_request_fires_immediately(self) -> None:
        counter = _Counter()
        notifier = ThrottledNotifier(counter, interval=0.05)
        notifier.schedule()
        assert counter.calls == 1
        assert notifier.window_open
        notifier.cancel()

    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_trailing_call(self) -> None:
        counter = _Counter()
        notifier = ThrottledNotifier(counter, interval=0.05)
        for _ in range(10):
            notifier.schedule()
        assert counter.calls == 1
        assert notifier.pending

        await asyncio.sleep(0.15)
        assert counter.calls == 2
        assert not notifier.pending
        assert not notifier.window_open

    @pytest.mark.asyncio
    async def test_quiet_window_has_no_trailing_call(self) -> None:
        counter = _Counter()
        notifier = ThrottledNotifier(counter, interval=0.05)
        notifier.schedule()
        await asyncio.sleep(0.15)
        assert counter.calls == 1

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_notification(self) -> None:
        counter = _Counter()
        notifier = ThrottledNotifier(counter, interval=0.05)
        notifier.schedule()
        notifier.schedule()
        notifier.cancel()
        await asyncio.sleep(0.15)
        assert counter.calls == 1
        assert not notifier.window_open

    @pytest.mark.asyncio
    async def test_new_window_after_close(self) -> None:
        counter = _Counter()
        notifier = ThrottledNotifier(counter, interval=0.05)
        notifier.schedule()
        await asyncio.sleep(0.15)
        notifier.schedule()
        assert counter.calls == 2
        notifier.cancel()

    def test_without_event_loop_every_request_notifies(self) -> None:
        counter = _Counter()
        notifier = ThrottledNotifier(counter, interval=0.05)
        notifier.schedule()
        notifier.schedule()
        assert counter.calls == 2
        assert not notifier.window_open
        assert not notifier.pending
