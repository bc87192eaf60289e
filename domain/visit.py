"""
Domain: Property visits.

A lead may have zero or many visits. The presence of at least one visit moves
a lead from the pre-visit track to the post-visit track for good.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Visit:
    visit_id: UUID
    lead_id: UUID
    occurred_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)


@dataclass(frozen=True, slots=True)
class VisitSummary:
    """
    What the evaluator needs to know about a lead's visits.

    Summaries are taken "as of" an instant: visits after it are not counted.
    """

    count: int
    earliest_at: Optional[datetime] = None
    latest_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("count must be >= 0")
        if self.count == 0 and (self.earliest_at is not None or self.latest_at is not None):
            raise ValueError("an empty summary cannot carry visit timestamps")
        if self.count > 0 and (self.earliest_at is None or self.latest_at is None):
            raise ValueError("a non-empty summary requires earliest_at and latest_at")

    @property
    def has_visit(self) -> bool:
        return self.count > 0

    @staticmethod
    def empty() -> "VisitSummary":
        return VisitSummary(count=0)

    @staticmethod
    def from_visits(visits: Iterable[Visit]) -> "VisitSummary":
        instants = [v.occurred_at for v in visits]
        if not instants:
            return VisitSummary.empty()
        return VisitSummary(
            count=len(instants),
            earliest_at=min(instants),
            latest_at=max(instants),
        )
