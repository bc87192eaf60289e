"""
Domain: Buyer lead entity and engagement activities.

Contract excerpts implemented here:
- A Lead is identified by lead_id (UUID) and is in exactly one stage.
- created_at, last_stage_changed_at and last_activity_at are UTC timestamps.
- last_stage_changed_at moves on every transition and only on transitions.
- version is the optimistic concurrency token; every stage write bumps it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from .lead_stage import LeadStage
from .time import require_utc_timestamp


class ActivityType(str, Enum):
    INQUIRY = "INQUIRY"
    LOGIN = "LOGIN"
    CONTACT_LOGGED = "CONTACT_LOGGED"
    PREFERENCE_SAVED = "PREFERENCE_SAVED"
    VISIT_CREATED = "VISIT_CREATED"
    MANUAL_REACTIVATION = "MANUAL_REACTIVATION"


@dataclass(frozen=True, slots=True)
class LeadActivity:
    """
    An inbound engagement event for a lead.

    preferences is only meaningful for PREFERENCE_SAVED.
    """

    activity_type: ActivityType
    occurred_at: datetime
    preferences: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)


@dataclass(frozen=True, slots=True)
class BuyerLead:
    """
    Snapshot of a buyer lead as read from persistence.

    Immutability:
    - The engine never holds a long-lived reference; stage changes produce a
      new instance via with_stage().
    """

    lead_id: UUID
    stage: LeadStage
    created_at: datetime
    last_stage_changed_at: datetime
    last_activity_at: Optional[datetime] = None
    preferences: Optional[Mapping[str, Any]] = None
    version: int = 0

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("last_stage_changed_at", self.last_stage_changed_at)
        if self.last_activity_at is not None:
            require_utc_timestamp("last_activity_at", self.last_activity_at)
        if not isinstance(self.stage, LeadStage):
            raise TypeError("stage must be a LeadStage")
        if self.last_stage_changed_at < self.created_at:
            raise ValueError("last_stage_changed_at must be >= created_at")
        if self.version < 0:
            raise ValueError("version must be >= 0")

    @property
    def has_preferences(self) -> bool:
        """True when the buyer has saved a non-empty set of preferences."""

        return bool(self.preferences)

    def with_stage(self, stage: LeadStage, changed_at: datetime) -> "BuyerLead":
        """
        Return a new BuyerLead moved to `stage` at `changed_at`.

        Refuses edges that are not part of the stage graph.
        """

        require_utc_timestamp("changed_at", changed_at)
        if not self.stage.can_transition_to(stage):
            raise ValueError(f"Transition {self.stage.value} -> {stage.value} is not allowed")
        return replace(
            self,
            stage=stage,
            last_stage_changed_at=changed_at,
            version=self.version + 1,
        )

    def with_activity(
        self,
        occurred_at: datetime,
        preferences: Optional[Mapping[str, Any]] = None,
    ) -> "BuyerLead":
        """
        Return a new BuyerLead with engagement recorded.

        last_activity_at never moves backwards; stage and version are untouched.
        """

        require_utc_timestamp("occurred_at", occurred_at)
        last_activity_at = occurred_at
        if self.last_activity_at is not None and self.last_activity_at > occurred_at:
            last_activity_at = self.last_activity_at
        return replace(
            self,
            last_activity_at=last_activity_at,
            preferences=preferences if preferences is not None else self.preferences,
        )
