"""Application configuration loaded from environment variables."""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "screenflow"
    debug: bool = False
    log_level: str = "INFO"

    # Event stream
    event_prefix: str = "screenflow"
    notify_throttle_ms: int = 100

    # Export metadata
    app_id: str = "unknown"
    framework_version: str = "unknown"
    device: str = "unknown"

    # Profiling backend (null backend when unset)
    vm_service_uri: Optional[str] = None
    isolate_id: Optional[str] = None

    model_config = {"env_prefix": "SCREENFLOW_"}


settings = Settings()
