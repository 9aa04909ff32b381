"""Dashboard WebSocket: pushes session snapshots to connected frontends.

Architecture:
    App  →  /ws/events     →  RemoteSessionManager rebuilds sessions
                                    ↓
                               manager notifies listeners
                                    ↓
    FE   ←  /ws/dashboard  ←  snapshot broadcast to every client

Notifications are already throttled by the manager, so every notification
becomes exactly one broadcast.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from screenflow.store.session_manager import RemoteSessionManager

logger = logging.getLogger(__name__)


class DashboardManager:
    """Tracks connected frontend WebSocket clients and broadcasts snapshots."""

    def __init__(self, manager: RemoteSessionManager) -> None:
        self._manager = manager
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        manager.add_listener(self.on_sessions_changed)

    # ── Client management ────────────────────────────────────────────

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        async with self._lock:
            self._clients.add(ws)
        logger.info("Dashboard client connected (%d total)", len(self._clients))
        await ws.send_text(json.dumps(self.build_snapshot()))

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(ws)
        logger.info("Dashboard client disconnected (%d remaining)", len(self._clients))

    @property
    def client_count(self) -> int:
        return len(self._clients)

    # ── Snapshot + broadcast ─────────────────────────────────────────

    def on_sessions_changed(self) -> None:
        """Manager listener.  Broadcasts in a background task."""
        if not self._clients:
            return
        task = asyncio.create_task(self._broadcast(self.build_snapshot()))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def build_snapshot(self) -> dict[str, Any]:
        active = self._manager.active_session
        return {
            "type": "sessions_snapshot",
            "active_session_id": active.session_id if active else None,
            "sessions": [s.summary() for s in self._manager.sessions],
            "baseline_count": len(self._manager.baselines),
        }

    async def _broadcast(self, payload: dict[str, Any]) -> None:
        message = json.dumps(payload, default=str)
        dead: set[WebSocket] = set()

        async with self._lock:
            clients = set(self._clients)

        for ws in clients:
            try:
                await ws.send_text(message)
            except Exception:
                dead.add(ws)

        if dead:
            async with self._lock:
                self._clients -= dead
            logger.info("Removed %d dead dashboard client(s)", len(dead))


# ── WebSocket endpoint ───────────────────────────────────────────────────


def create_dashboard_router(dashboard: DashboardManager) -> APIRouter:
    """Factory that creates the dashboard WebSocket endpoint."""

    router = APIRouter()

    @router.websocket("/ws/dashboard")
    async def dashboard_ws(websocket: WebSocket) -> None:
        await dashboard.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                if data.strip().lower() == "ping":
                    await websocket.send_text("pong")
        except WebSocketDisconnect:
            await dashboard.disconnect(websocket)

    return router
