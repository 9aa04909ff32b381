"""Export / import of session collections.

Export wraps sessions in a metadata envelope::

    {"meta": {"schemaVersion": "1.0", "appId": ..., "flutterVersion": ...,
              "timestamp": <ISO-8601 UTC>, "device": ...[, "totalFrames": n]},
     "sessions": [<ScreenSession.to_dict()>, ...]}

Import reverses it.  The round trip is lossless for every stored session
field.  Payloads without a ``meta`` block are accepted; a ``meta`` block
with an unsupported ``schemaVersion`` is rejected.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import ValidationError

from screenflow.domain.session import ScreenSession, SessionStateError
from screenflow.foundation.clock import utc_now

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"
SUPPORTED_SCHEMA_VERSIONS = frozenset({SCHEMA_VERSION})


class InvalidExportFormatError(Exception):
    """Raised when an import payload does not match the export schema."""


def export_sessions(
    sessions: Iterable[ScreenSession],
    app_id: str | None = None,
    framework_version: str | None = None,
    device: str | None = None,
    total_frames: int | None = None,
) -> dict[str, Any]:
    """Serialize *sessions* with a metadata envelope."""
    meta: dict[str, Any] = {
        "schemaVersion": SCHEMA_VERSION,
        "appId": app_id or "unknown",
        "flutterVersion": framework_version or "unknown",
        "timestamp": utc_now().isoformat(),
        "device": device or "unknown",
    }
    if total_frames is not None:
        meta["totalFrames"] = total_frames

    return {
        "meta": meta,
        "sessions": [s.to_dict() for s in sessions],
    }


def import_sessions(payload: Any) -> list[ScreenSession]:
    """Deserialize an export payload into session records.

    Raises:
        InvalidExportFormatError: If the payload is not a valid export.
    """
    if not isinstance(payload, dict):
        raise InvalidExportFormatError("Export payload must be a JSON object")

    meta = payload.get("meta")
    if meta is not None:
        if not isinstance(meta, dict):
            raise InvalidExportFormatError("'meta' must be an object")
        version = meta.get("schemaVersion")
        if version not in SUPPORTED_SCHEMA_VERSIONS:
            raise InvalidExportFormatError(f"Unsupported schemaVersion: {version!r}")

    records = payload.get("sessions")
    if records is None:
        return []
    if not isinstance(records, list):
        raise InvalidExportFormatError("'sessions' must be an array")

    sessions: list[ScreenSession] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise InvalidExportFormatError(f"Session #{index} is not an object")
        try:
            sessions.append(ScreenSession.from_dict(record))
        except (ValidationError, SessionStateError) as exc:
            raise InvalidExportFormatError(f"Session #{index} is malformed: {exc}") from exc

    logger.info("Imported %d session(s)", len(sessions))
    return sessions
