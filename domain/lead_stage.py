"""
Domain: Buyer lead stages and the transition graph.

Track A (pre-visit):    NEW_LEAD -> QUALIFIED -> AT_RISK_LEAD -> INACTIVE_LEAD
Track B (post-visit):   ACTIVE_VISITOR -> AT_RISK_VISITOR -> INACTIVE_VISITOR
Track C (reactivation): AT_RISK_* / INACTIVE_* -> REACTIVATED

Contract excerpts implemented here:
- A lead is in exactly one stage at any instant.
- Transitions only move forward along a track or sideways into REACTIVATED.
- The stage set is closed: unknown values are rejected, never coerced.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, FrozenSet, Mapping

from .errors import InvalidStageData


class Track(str, Enum):
    PRE_VISIT = "PRE_VISIT"
    POST_VISIT = "POST_VISIT"
    REACTIVATION = "REACTIVATION"


class LeadStage(str, Enum):
    NEW_LEAD = "NEW_LEAD"
    QUALIFIED = "QUALIFIED"
    AT_RISK_LEAD = "AT_RISK_LEAD"
    INACTIVE_LEAD = "INACTIVE_LEAD"
    ACTIVE_VISITOR = "ACTIVE_VISITOR"
    AT_RISK_VISITOR = "AT_RISK_VISITOR"
    INACTIVE_VISITOR = "INACTIVE_VISITOR"
    REACTIVATED = "REACTIVATED"

    @staticmethod
    def parse(value: Any) -> "LeadStage":
        """
        Resolve a stored stage value.

        Raises InvalidStageData for anything outside the known set (including None).
        """

        if isinstance(value, LeadStage):
            return value
        if value is None:
            raise InvalidStageData(value)
        try:
            return LeadStage(str(value))
        except ValueError:
            raise InvalidStageData(value) from None

    @property
    def track(self) -> Track:
        if self is LeadStage.REACTIVATED:
            return Track.REACTIVATION
        if self in _VISITOR_STAGES:
            return Track.POST_VISIT
        return Track.PRE_VISIT

    @property
    def is_terminal(self) -> bool:
        """Terminal inactive stages only leave via reactivation."""

        return self in _TERMINAL_STAGES

    @property
    def is_reactivatable(self) -> bool:
        return self in _REACTIVATABLE_STAGES

    @property
    def is_visitor_stage(self) -> bool:
        return self in _VISITOR_STAGES

    def can_transition_to(self, target: "LeadStage") -> bool:
        return target in STAGE_TRANSITIONS[self]


_VISITOR_STAGES: FrozenSet[LeadStage] = frozenset(
    {LeadStage.ACTIVE_VISITOR, LeadStage.AT_RISK_VISITOR, LeadStage.INACTIVE_VISITOR}
)

_TERMINAL_STAGES: FrozenSet[LeadStage] = frozenset(
    {LeadStage.INACTIVE_LEAD, LeadStage.INACTIVE_VISITOR}
)

_REACTIVATABLE_STAGES: FrozenSet[LeadStage] = frozenset(
    {
        LeadStage.AT_RISK_LEAD,
        LeadStage.INACTIVE_LEAD,
        LeadStage.AT_RISK_VISITOR,
        LeadStage.INACTIVE_VISITOR,
    }
)

# The complete set of allowed edges. Nothing outside this table may be applied.
STAGE_TRANSITIONS: Mapping[LeadStage, FrozenSet[LeadStage]] = {
    LeadStage.NEW_LEAD: frozenset(
        {LeadStage.QUALIFIED, LeadStage.AT_RISK_LEAD, LeadStage.ACTIVE_VISITOR}
    ),
    LeadStage.QUALIFIED: frozenset({LeadStage.AT_RISK_LEAD, LeadStage.ACTIVE_VISITOR}),
    LeadStage.AT_RISK_LEAD: frozenset({LeadStage.INACTIVE_LEAD, LeadStage.REACTIVATED}),
    LeadStage.INACTIVE_LEAD: frozenset({LeadStage.REACTIVATED}),
    LeadStage.ACTIVE_VISITOR: frozenset({LeadStage.AT_RISK_VISITOR}),
    LeadStage.AT_RISK_VISITOR: frozenset(
        {LeadStage.INACTIVE_VISITOR, LeadStage.REACTIVATED}
    ),
    LeadStage.INACTIVE_VISITOR: frozenset({LeadStage.REACTIVATED}),
    LeadStage.REACTIVATED: frozenset(
        {LeadStage.AT_RISK_LEAD, LeadStage.AT_RISK_VISITOR, LeadStage.ACTIVE_VISITOR}
    ),
}

NON_TERMINAL_STAGES: FrozenSet[LeadStage] = frozenset(
    stage for stage in LeadStage if not stage.is_terminal
)
