"""
Stage-change event sink (persistence).

Applied transitions are appended to the `lead_stage_events` table, which the
notification/automation layer consumes. Rows carry their own event_id so the
consumer can de-duplicate redelivered events.
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import uuid4

from domain.events import StageChangeEvent
from repositories.supabase_utils import execute, to_iso_utc

_STAGE_EVENTS_TABLE: str = "lead_stage_events"


class StageEventPublisher(Protocol):
    def publish(self, event: StageChangeEvent) -> None:
        ...


class SupabaseStageEventPublisher:
    def __init__(self, client: Any) -> None:
        self._client = client

    def publish(self, event: StageChangeEvent) -> None:
        """
        Insert one event row.

        Raises RepositoryUnavailable if Supabase rejects the insert.
        """

        payload: dict[str, Any] = {
            "event_id": str(uuid4()),
            "lead_id": str(event.lead_id),
            "from_stage": event.from_stage.value,
            "to_stage": event.to_stage.value,
            "occurred_at_utc": to_iso_utc(event.occurred_at, name="occurred_at"),
        }
        execute(self._client.table(_STAGE_EVENTS_TABLE).insert(payload), "publish stage event")


__all__ = ["StageEventPublisher", "SupabaseStageEventPublisher"]
