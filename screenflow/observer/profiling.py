"""Profiling backend: CPU samples and timeline for a session's window.

The backend is an external collaborator and is strictly best-effort.  Every
call returns a :class:`FetchResult` instead of raising for the expected
cases:

    - ``ok``      the backend answered with data
    - ``absent``  no live connection / nothing to report
    - ``failed``  the backend was reachable but the request failed

Hard exceptions are reserved for programming errors.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger(__name__)


class FetchStatus(str, Enum):
    OK = "ok"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult:
    status: FetchStatus
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: dict[str, Any]) -> FetchResult:
        return cls(FetchStatus.OK, data=data)

    @classmethod
    def absent(cls) -> FetchResult:
        return cls(FetchStatus.ABSENT)

    @classmethod
    def failed(cls, error: str) -> FetchResult:
        return cls(FetchStatus.FAILED, error=error)

    @property
    def has_data(self) -> bool:
        return self.status is FetchStatus.OK and self.data is not None


class ProfilingBackend(Protocol):
    """Source of CPU samples and timeline data for the instrumented process."""

    async def get_cpu_samples(
        self,
        isolate_id: str | None,
        time_start_micros: int,
        time_extent_micros: int,
    ) -> FetchResult:
        ...

    async def get_vm_timeline(self) -> FetchResult:
        """Full available timeline; the backend has no windowed query."""
        ...


class NullProfilingBackend:
    """Backend used when no profiling connection is configured."""

    async def get_cpu_samples(
        self,
        isolate_id: str | None,
        time_start_micros: int,
        time_extent_micros: int,
    ) -> FetchResult:
        return FetchResult.absent()

    async def get_vm_timeline(self) -> FetchResult:
        return FetchResult.absent()


class VmServiceProfilingBackend:
    """JSON-RPC 2.0 client for a VM service WebSocket.

    A fresh connection is opened per request: requests are rare (one pair
    per completed session) and the service may come and go.

    Args:
        uri: WebSocket URI of the VM service, e.g. ``ws://127.0.0.1:8181/ws``.
        isolate_id: Isolate used when the caller does not pass one.
    """

    def __init__(self, uri: str, isolate_id: str | None = None) -> None:
        self._uri = uri
        self._isolate_id = isolate_id
        self._ids = itertools.count(1)

    async def get_cpu_samples(
        self,
        isolate_id: str | None,
        time_start_micros: int,
        time_extent_micros: int,
    ) -> FetchResult:
        isolate = isolate_id or self._isolate_id
        if isolate is None:
            return FetchResult.absent()
        return await self._call("getCpuSamples", {
            "isolateId": isolate,
            "timeOriginMicros": time_start_micros,
            "timeExtentMicros": time_extent_micros,
        })

    async def get_vm_timeline(self) -> FetchResult:
        return await self._call("getVMTimeline", {})

    async def _call(self, method: str, params: dict[str, Any]) -> FetchResult:
        request_id = str(next(self._ids))
        request = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        try:
            async with websockets.connect(self._uri, max_size=None) as ws:
                await ws.send(json.dumps(request))
                while True:
                    message = json.loads(await ws.recv())
                    if message.get("id") == request_id:
                        break
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.warning("VM service %s unreachable for %s: %s", self._uri, method, exc)
            return FetchResult.absent()

        if "error" in message:
            error = message["error"]
            logger.warning("VM service %s failed: %s", method, error)
            return FetchResult.failed(str(error.get("message", error)))

        result = message.get("result")
        if not isinstance(result, dict):
            return FetchResult.absent()
        return FetchResult.ok(result)
