"""WebSocket endpoint for instrumentation events.

Path: /ws/events

Each message is one transport envelope ``{"kind": ..., "data": {...}}``.
Envelopes are validated at the boundary, dispatched into the
RemoteSessionManager, and acknowledged.  Protocol inconsistencies are
reported back to the sender; the connection stays open.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from screenflow.domain.session import SessionStateError
from screenflow.store.session_manager import RemoteSessionManager, UnknownSessionError

logger = logging.getLogger(__name__)


def create_events_router(manager: RemoteSessionManager) -> APIRouter:
    """Factory that wires the events endpoint to a concrete manager."""

    router = APIRouter()

    @router.websocket("/ws/events")
    async def ingest_events(websocket: WebSocket) -> None:
        await websocket.accept()
        logger.info("Instrumented app connected")

        try:
            while True:
                text = await websocket.receive_text()
                try:
                    raw = json.loads(text)
                except json.JSONDecodeError as exc:
                    await websocket.send_json({
                        "status": "error",
                        "reason": "invalid_envelope",
                        "detail": f"Malformed JSON: {exc.msg}",
                    })
                    continue

                if not isinstance(raw, dict):
                    await websocket.send_json({
                        "status": "error",
                        "reason": "invalid_envelope",
                        "detail": "Expected a JSON object",
                    })
                    continue

                try:
                    handled = manager.handle_envelope(raw)
                except UnknownSessionError as exc:
                    await websocket.send_json({
                        "status": "error",
                        "reason": "unknown_session",
                        "session_id": exc.session_id,
                        "detail": str(exc),
                    })
                    continue
                except ValidationError as exc:
                    await websocket.send_json({
                        "status": "error",
                        "reason": "invalid_payload",
                        "detail": exc.errors(include_url=False, include_context=False),
                    })
                    continue
                except SessionStateError as exc:
                    await websocket.send_json({
                        "status": "error",
                        "reason": "session_state",
                        "detail": str(exc),
                    })
                    continue

                await websocket.send_json({
                    "status": "accepted" if handled else "ignored",
                    "kind": raw.get("kind"),
                })

        except WebSocketDisconnect:
            logger.info("Instrumented app disconnected")

    return router
