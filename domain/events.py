"""
Domain: Stage-change events.

One event is emitted per applied transition and consumed by the
notification/automation layer. Delivery is at-least-once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from .lead_stage import LeadStage
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class StageChangeEvent:
    lead_id: UUID
    from_stage: LeadStage
    to_stage: LeadStage
    occurred_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""

        return {
            "lead_id": str(self.lead_id),
            "from_stage": self.from_stage.value,
            "to_stage": self.to_stage.value,
            "occurred_at": self.occurred_at.isoformat(),
        }
