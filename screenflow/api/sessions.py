"""REST endpoints over reconstructed sessions.

Paths:
    GET  /api/sessions                  summaries of every session
    GET  /api/sessions/{id}             full record incl. aggregate + insights
    GET  /api/export                    export envelope of sealed sessions
    POST /api/import                    load an export as comparison baselines
    GET  /api/compare?baseline=&candidate=
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException

from screenflow.core.comparison import compare_sessions
from screenflow.store.exchange import InvalidExportFormatError
from screenflow.store.session_manager import RemoteSessionManager

logger = logging.getLogger(__name__)


def create_sessions_router(
    manager: RemoteSessionManager,
    app_id: str = "unknown",
    framework_version: str = "unknown",
    device: str = "unknown",
) -> APIRouter:
    """Factory that wires the session endpoints to a concrete manager."""

    router = APIRouter(prefix="/api", tags=["sessions"])

    @router.get("/sessions")
    async def list_sessions() -> dict[str, Any]:
        sessions = [s.summary() for s in manager.sessions]
        active = manager.active_session
        return {
            "sessions": sessions,
            "count": len(sessions),
            "active_session_id": active.session_id if active else None,
        }

    @router.get("/sessions/{session_id}")
    async def get_session(session_id: str) -> dict[str, Any]:
        session = manager.find(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return session.to_dict()

    @router.get("/export")
    async def export() -> dict[str, Any]:
        return manager.export_sessions(
            app_id=app_id,
            framework_version=framework_version,
            device=device,
        )

    @router.post("/import")
    async def import_baselines(payload: Any = Body(...)) -> dict[str, Any]:
        try:
            baselines = manager.import_baselines(payload)
        except InvalidExportFormatError as exc:
            logger.warning("Rejected import: %s", exc)
            raise HTTPException(status_code=400, detail=f"Invalid format: {exc}") from exc
        return {
            "imported": len(baselines),
            "sessions": [s.summary() for s in baselines],
        }

    @router.get("/compare")
    async def compare(baseline: str, candidate: str) -> dict[str, Any]:
        base = manager.find(baseline)
        cand = manager.find(candidate)
        if base is None or cand is None:
            missing = baseline if base is None else candidate
            raise HTTPException(status_code=404, detail=f"Session {missing} not found")

        comparison = compare_sessions(base, cand)
        return {
            **comparison.model_dump(),
            "regressions": [m.name for m in comparison.regressions()],
        }

    return router
