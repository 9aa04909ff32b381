"""Event sinks: how instrumentation hands events to the transport.

Instrumentation is synchronous and must never block the host's event turn,
so every sink here is a cheap, non-blocking ``post_event``.  Delivery to an
out-of-process observer is done by :func:`forward_to_websocket`, which
drains a :class:`QueueSink` on the asyncio loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol, TextIO

import websockets

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Destination for instrumentation events."""

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        ...


class NullSink:
    """Discards every event."""

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        return None


class RecordingSink:
    """Keeps every posted event in memory, in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        self.events.append((kind, data))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]

    def of_kind(self, kind: str) -> list[dict[str, Any]]:
        return [data for k, data in self.events if k == kind]

    def clear(self) -> None:
        self.events.clear()


class JsonLinesSink:
    """Writes one JSON envelope per line to a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        self._stream.write(json.dumps({"kind": kind, "data": data}) + "\n")
        self._stream.flush()


class QueueSink:
    """Buffers envelopes in an asyncio queue for a forwarding task."""

    def __init__(self, queue: asyncio.Queue | None = None) -> None:
        self.queue: asyncio.Queue = queue or asyncio.Queue()

    def post_event(self, kind: str, data: dict[str, Any]) -> None:
        self.queue.put_nowait({"kind": kind, "data": data})


async def forward_to_websocket(queue: asyncio.Queue, uri: str) -> None:
    """Send queued envelopes to an observer's ``/ws/events`` endpoint.

    Runs until cancelled.  The observer acknowledges each message; error
    acknowledgements are logged, not raised, since the instrumented app
    must keep running regardless of observer state.
    """
    async with websockets.connect(uri) as ws:
        logger.info("Connected to observer at %s", uri)
        while True:
            envelope = await queue.get()
            await ws.send(json.dumps(envelope))
            ack = json.loads(await ws.recv())
            if ack.get("status") != "accepted":
                logger.warning(
                    "Observer rejected %s: %s",
                    envelope.get("kind"),
                    ack.get("reason"),
                )
            queue.task_done()
