"""
Visit repository (persistence).

Read-only access to completed visits. Visits are created by the scheduling
side of the back office; the lifecycle engine only asks whether and when a
lead has visited.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol
from uuid import UUID

from domain.time import require_utc_timestamp
from domain.visit import Visit, VisitSummary
from repositories.supabase_utils import PAGE_SIZE, execute, parse_utc_datetime, to_iso_utc

# Supabase table name for visit records.
_VISITS_TABLE: str = "visits"


class VisitRepository(Protocol):
    def has_any_visit(self, lead_id: UUID, as_of: Optional[datetime] = None) -> bool:
        ...

    def get_latest_visit(self, lead_id: UUID, as_of: Optional[datetime] = None) -> Optional[Visit]:
        ...

    def summarize_visits(self, lead_id: UUID, as_of: datetime) -> VisitSummary:
        ...


def _row_to_visit(row: Mapping[str, Any]) -> Visit:
    return Visit(
        visit_id=UUID(str(row["visit_id"])),
        lead_id=UUID(str(row["lead_id"])),
        occurred_at=parse_utc_datetime(row["occurred_at_utc"]),
    )


class SupabaseVisitRepository:
    """Visit lookups against the Supabase `visits` table."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def _query(self, lead_id: UUID, as_of: Optional[datetime]) -> Any:
        query = (
            self._client.table(_VISITS_TABLE)
            .select("visit_id,lead_id,occurred_at_utc")
            .eq("lead_id", str(lead_id))
        )
        if as_of is not None:
            query = query.lte("occurred_at_utc", to_iso_utc(as_of, name="as_of"))
        return query

    def has_any_visit(self, lead_id: UUID, as_of: Optional[datetime] = None) -> bool:
        return self.get_latest_visit(lead_id, as_of) is not None

    def get_latest_visit(self, lead_id: UUID, as_of: Optional[datetime] = None) -> Optional[Visit]:
        rows = execute(
            self._query(lead_id, as_of).order("occurred_at_utc", desc=True).limit(1),
            "fetch latest visit",
        )
        if not rows:
            return None
        return _row_to_visit(rows[0])

    def summarize_visits(self, lead_id: UUID, as_of: datetime) -> VisitSummary:
        """Count visits that happened at or before `as_of` and bracket them."""

        require_utc_timestamp("as_of", as_of)

        visits: list[Visit] = []
        offset = 0
        while True:
            rows = execute(
                self._query(lead_id, as_of)
                .order("occurred_at_utc")
                .range(offset, offset + PAGE_SIZE - 1),
                "summarize visits",
            )
            visits.extend(_row_to_visit(row) for row in rows)
            if len(rows) < PAGE_SIZE:
                break
            offset += len(rows)

        return VisitSummary.from_visits(visits)


__all__ = ["VisitRepository", "SupabaseVisitRepository"]
