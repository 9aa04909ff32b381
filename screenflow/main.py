"""screenflow observer: screen-session performance analysis service.

This is the application entry point.  It wires the profiling backend,
TelemetryCorrelator, RemoteSessionManager and the HTTP/WebSocket
endpoints together.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from screenflow.api.sessions import create_sessions_router
from screenflow.api.ws_dashboard import DashboardManager, create_dashboard_router
from screenflow.api.ws_events import create_events_router
from screenflow.config import settings
from screenflow.core.correlator import TelemetryCorrelator
from screenflow.core.insight_engine import InsightEngine
from screenflow.observer.profiling import (
    NullProfilingBackend,
    ProfilingBackend,
    VmServiceProfilingBackend,
)
from screenflow.store.session_manager import RemoteSessionManager

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

# ── Profiling ────────────────────────────────────────────────────────────────

backend: ProfilingBackend
if settings.vm_service_uri:
    backend = VmServiceProfilingBackend(settings.vm_service_uri, settings.isolate_id)
else:
    backend = NullProfilingBackend()

correlator = TelemetryCorrelator(
    backend,
    insight_engine=InsightEngine(),
    isolate_id=settings.isolate_id,
)

# ── State ────────────────────────────────────────────────────────────────────

manager = RemoteSessionManager(
    correlator=correlator,
    event_prefix=settings.event_prefix,
    throttle_interval=settings.notify_throttle_ms / 1000.0,
)
dashboard = DashboardManager(manager)

# ── App ──────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    await manager.drain()
    manager.close()


app = FastAPI(
    lifespan=lifespan,
    title=settings.app_name,
    description="Screen-session correlation, telemetry enrichment and performance insights",
    version="0.1.0",
)

# ── Routes ───────────────────────────────────────────────────────────────────

app.include_router(create_events_router(manager))
app.include_router(create_dashboard_router(dashboard))
app.include_router(create_sessions_router(
    manager,
    app_id=settings.app_id,
    framework_version=settings.framework_version,
    device=settings.device,
))


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/health")
async def health() -> dict:
    active = manager.active_session
    return {
        "status": "ok",
        "sessions": len(manager.sessions),
        "completed_sessions": len(manager.completed_sessions),
        "active_session_id": active.session_id if active else None,
        "pending_correlations": manager.pending_correlations,
        "baselines": len(manager.baselines),
        "dashboard_clients": dashboard.client_count,
        "profiling_backend": type(backend).__name__,
    }


