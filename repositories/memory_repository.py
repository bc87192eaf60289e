"""
In-memory repositories.

Drop-in replacements for the Supabase repositories, used by tests and local
demos. Each instance guards its rows with a lock held only for a single lead's
read or compare-and-set, never across a sweep.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Set
from uuid import UUID

from domain.errors import ConcurrencyConflict, LeadNotFound, RepositoryUnavailable
from domain.events import StageChangeEvent
from domain.lead import BuyerLead
from domain.lead_stage import LeadStage
from domain.visit import Visit, VisitSummary


class InMemoryLeadRepository:
    """
    Fault injection:
    - fail_updates_for: lead IDs whose stage writes always raise ConcurrencyConflict.
    - unavailable: when True every call raises RepositoryUnavailable.
    """

    def __init__(self, leads: Optional[List[BuyerLead]] = None) -> None:
        self._lock = threading.Lock()
        self._leads: Dict[UUID, BuyerLead] = {}
        self.fail_updates_for: Set[UUID] = set()
        self.unavailable = False
        self.update_attempts: Dict[UUID, int] = {}
        for lead in leads or []:
            self.add(lead)

    def _check_available(self) -> None:
        if self.unavailable:
            raise RepositoryUnavailable("in-memory lead repository is offline")

    def add(self, lead: BuyerLead) -> None:
        with self._lock:
            self._leads[lead.lead_id] = lead

    def get_lead(self, lead_id: UUID) -> Optional[BuyerLead]:
        self._check_available()
        with self._lock:
            return self._leads.get(lead_id)

    def get_due_lead_ids(self, now: datetime) -> List[str]:
        self._check_available()
        with self._lock:
            snapshot = list(self._leads.values())
        return sorted(
            str(lead.lead_id)
            for lead in snapshot
            if not lead.stage.is_terminal and lead.last_stage_changed_at <= now
        )

    def update_stage(
        self,
        lead_id: UUID,
        new_stage: LeadStage,
        changed_at: datetime,
        expected_version: int,
    ) -> BuyerLead:
        self._check_available()
        with self._lock:
            self.update_attempts[lead_id] = self.update_attempts.get(lead_id, 0) + 1
            current = self._leads.get(lead_id)
            if (
                current is None
                or current.version != expected_version
                or lead_id in self.fail_updates_for
            ):
                raise ConcurrencyConflict(lead_id, expected_version)
            updated = current.with_stage(new_stage, changed_at)
            self._leads[lead_id] = updated
            return updated

    def record_activity(
        self,
        lead_id: UUID,
        occurred_at: datetime,
        preferences: Optional[Mapping[str, Any]] = None,
    ) -> BuyerLead:
        self._check_available()
        with self._lock:
            current = self._leads.get(lead_id)
            if current is None:
                raise LeadNotFound(lead_id)
            updated = current.with_activity(occurred_at, preferences)
            self._leads[lead_id] = updated
            return updated


class InMemoryVisitRepository:
    def __init__(self, visits: Optional[List[Visit]] = None) -> None:
        self._lock = threading.Lock()
        self._visits: Dict[UUID, List[Visit]] = {}
        for visit in visits or []:
            self.add(visit)

    def add(self, visit: Visit) -> None:
        with self._lock:
            self._visits.setdefault(visit.lead_id, []).append(visit)

    def _visits_as_of(self, lead_id: UUID, as_of: Optional[datetime]) -> List[Visit]:
        with self._lock:
            visits = list(self._visits.get(lead_id, []))
        if as_of is None:
            return visits
        return [v for v in visits if v.occurred_at <= as_of]

    def has_any_visit(self, lead_id: UUID, as_of: Optional[datetime] = None) -> bool:
        return bool(self._visits_as_of(lead_id, as_of))

    def get_latest_visit(self, lead_id: UUID, as_of: Optional[datetime] = None) -> Optional[Visit]:
        visits = self._visits_as_of(lead_id, as_of)
        if not visits:
            return None
        return max(visits, key=lambda v: v.occurred_at)

    def summarize_visits(self, lead_id: UUID, as_of: datetime) -> VisitSummary:
        return VisitSummary.from_visits(self._visits_as_of(lead_id, as_of))


class InMemoryStageEventPublisher:
    """Collects published events; set `fail` to simulate a broken consumer."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: List[StageChangeEvent] = []
        self.fail = False

    def publish(self, event: StageChangeEvent) -> None:
        if self.fail:
            raise RepositoryUnavailable("stage event consumer is offline")
        with self._lock:
            self.events.append(event)


__all__ = [
    "InMemoryLeadRepository",
    "InMemoryVisitRepository",
    "InMemoryStageEventPublisher",
]
