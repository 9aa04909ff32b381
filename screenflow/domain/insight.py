"""PerformanceInsight: one detected rendering anti-pattern."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from screenflow.domain.enums import Severity


class PerformanceInsight(BaseModel):
    """A rule-detected problem with remediation guidance.

    Produced fresh on every analysis run; never updated in place.
    """

    type: str = Field(..., min_length=1, description="Machine-stable detector tag")
    title: str
    description: str
    suggestions: list[str] = Field(default_factory=list)
    severity: Severity = Severity.WARNING
    metadata: Optional[dict[str, Any]] = None

    model_config = {"frozen": True}

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
