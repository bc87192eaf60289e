"""
Domain: Lead lifecycle stage evaluator (pure).

Manages buyer lead stage transitions using a time-decay state machine.

Track A (pre-visit):    NEW_LEAD -> QUALIFIED -> AT_RISK_LEAD -> INACTIVE_LEAD
Track B (post-visit):   ACTIVE_VISITOR -> AT_RISK_VISITOR -> INACTIVE_VISITOR
Track C (reactivation): AT_RISK_* / INACTIVE_* -> REACTIVATED

Contract excerpts implemented here:
- Elapsed time is counted in IST calendar days (midnight crossings), never in
  raw 24-hour deltas.
- Ties count as eligible: elapsed == threshold transitions.
- The first visit moves a pre-visit lead onto Track B; later visits never
  re-trigger that gate.
- New engagement on an AT_RISK_* / INACTIVE_* lead moves it to REACTIVATED,
  whichever track it was on. REACTIVATED decays on Track B when the lead has a
  visit, otherwise on Track A.
- Evaluating again right after a transition, with the same "now", yields
  NoTransition.

This module contains no I/O. All inputs, including "now", are passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional, Union

from .lead import ActivityType, BuyerLead
from .lead_stage import LeadStage
from .time import elapsed_ist_days, latest, require_utc_timestamp
from .visit import VisitSummary

# Defaults match the daily cron behavior of the brokerage back office:
# pre-visit leads go at-risk on day 7 and inactive on day 30; visitors go
# at-risk 30 days after their last visit and inactive after 90.
DEFAULT_QUALIFICATION_WINDOW_DAYS = 7
DEFAULT_QUALIFIED_AT_RISK_DAYS = 7
DEFAULT_LEAD_INACTIVE_DAYS = 23
DEFAULT_VISITOR_AT_RISK_DAYS = 30
DEFAULT_VISITOR_INACTIVE_DAYS = 60
DEFAULT_REACTIVATED_AT_RISK_DAYS = 7
DEFAULT_REACTIVATED_VISITOR_AT_RISK_DAYS = 30

# Saving preferences qualifies a new lead but does not by itself reactivate one.
DEFAULT_REACTIVATING_ACTIVITIES: FrozenSet[ActivityType] = frozenset(
    {
        ActivityType.INQUIRY,
        ActivityType.LOGIN,
        ActivityType.CONTACT_LOGGED,
        ActivityType.VISIT_CREATED,
        ActivityType.MANUAL_REACTIVATION,
    }
)

_DAY_THRESHOLDS = (
    "qualification_window_days",
    "qualified_at_risk_days",
    "lead_inactive_days",
    "visitor_at_risk_days",
    "visitor_inactive_days",
    "reactivated_at_risk_days",
    "reactivated_visitor_at_risk_days",
)


@dataclass(frozen=True, slots=True)
class LifecyclePolicy:
    """
    Decay thresholds (IST calendar days) and reactivation triggers.

    Every threshold must be at least 1 day so that a transition applied at
    "now" can never be followed by another one at the same "now".
    """

    qualification_window_days: int = DEFAULT_QUALIFICATION_WINDOW_DAYS
    qualified_at_risk_days: int = DEFAULT_QUALIFIED_AT_RISK_DAYS
    lead_inactive_days: int = DEFAULT_LEAD_INACTIVE_DAYS
    visitor_at_risk_days: int = DEFAULT_VISITOR_AT_RISK_DAYS
    visitor_inactive_days: int = DEFAULT_VISITOR_INACTIVE_DAYS
    reactivated_at_risk_days: int = DEFAULT_REACTIVATED_AT_RISK_DAYS
    reactivated_visitor_at_risk_days: int = DEFAULT_REACTIVATED_VISITOR_AT_RISK_DAYS
    reactivating_activities: FrozenSet[ActivityType] = field(
        default_factory=lambda: DEFAULT_REACTIVATING_ACTIVITIES
    )

    def __post_init__(self) -> None:
        for name in _DAY_THRESHOLDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer number of days")
            if value < 1:
                raise ValueError(f"{name} must be >= 1")


@dataclass(frozen=True, slots=True)
class NoTransition:
    reason: str = ""


@dataclass(frozen=True, slots=True)
class TransitionTo:
    stage: LeadStage
    reason: str = ""


StageDecision = Union[NoTransition, TransitionTo]


def _days_since(anchor: datetime, now: datetime) -> int:
    # Engagement stamped after "now" (clock skew) has not aged yet.
    if anchor >= now:
        return 0
    return elapsed_ist_days(anchor, now)


def _inactivity_anchor(lead: BuyerLead, visits: VisitSummary) -> datetime:
    """Most recent of: stage change, inbound activity, last visit."""

    return latest(lead.last_stage_changed_at, lead.last_activity_at, visits.latest_at)


def _decay_post_visit(
    lead: BuyerLead, visits: VisitSummary, now: datetime, policy: LifecyclePolicy
) -> StageDecision:
    days = _days_since(_inactivity_anchor(lead, visits), now)

    if lead.stage is LeadStage.ACTIVE_VISITOR and days >= policy.visitor_at_risk_days:
        return TransitionTo(LeadStage.AT_RISK_VISITOR, f"{days} days without engagement")
    if lead.stage is LeadStage.AT_RISK_VISITOR and days >= policy.visitor_inactive_days:
        return TransitionTo(LeadStage.INACTIVE_VISITOR, f"{days} days without engagement")
    if lead.stage is LeadStage.REACTIVATED and days >= policy.reactivated_visitor_at_risk_days:
        return TransitionTo(LeadStage.AT_RISK_VISITOR, f"{days} days since reactivation")
    if lead.stage.is_terminal:
        return NoTransition("terminal stage")
    return NoTransition("within threshold")


def _decay_pre_visit(lead: BuyerLead, now: datetime, policy: LifecyclePolicy) -> StageDecision:
    stage = lead.stage

    if stage is LeadStage.NEW_LEAD:
        # The qualification window is fixed from entry; activity does not extend it.
        days = _days_since(lead.last_stage_changed_at, now)
        if days >= policy.qualification_window_days:
            return TransitionTo(LeadStage.AT_RISK_LEAD, "qualification window elapsed")
        if lead.has_preferences:
            return TransitionTo(LeadStage.QUALIFIED, "preferences saved")
        return NoTransition("within qualification window")

    if stage.is_visitor_stage:
        return NoTransition("visitor stage without visits")

    days = _days_since(_inactivity_anchor(lead, VisitSummary.empty()), now)
    if stage is LeadStage.QUALIFIED and days >= policy.qualified_at_risk_days:
        return TransitionTo(LeadStage.AT_RISK_LEAD, f"{days} days without engagement")
    if stage is LeadStage.AT_RISK_LEAD and days >= policy.lead_inactive_days:
        return TransitionTo(LeadStage.INACTIVE_LEAD, f"{days} days without engagement")
    if stage is LeadStage.REACTIVATED and days >= policy.reactivated_at_risk_days:
        return TransitionTo(LeadStage.AT_RISK_LEAD, f"{days} days since reactivation")
    if stage.is_terminal:
        return NoTransition("terminal stage")
    return NoTransition("within threshold")


def _decide(
    lead: BuyerLead,
    visits: VisitSummary,
    now: datetime,
    policy: LifecyclePolicy,
    trigger: Optional[ActivityType],
) -> StageDecision:
    stage = lead.stage

    # Track C: reactivation on new engagement.
    if stage.is_reactivatable:
        if trigger is not None and trigger in policy.reactivating_activities:
            return TransitionTo(LeadStage.REACTIVATED, f"{trigger.value} activity")
        if visits.has_visit and visits.latest_at > lead.last_stage_changed_at:
            return TransitionTo(LeadStage.REACTIVATED, "visit after last stage change")

    if not visits.has_visit:
        return _decay_pre_visit(lead, now, policy)

    # Track B gate: one-way, one-time.
    if stage in (LeadStage.NEW_LEAD, LeadStage.QUALIFIED):
        return TransitionTo(LeadStage.ACTIVE_VISITOR, "first visit")
    if stage in (LeadStage.AT_RISK_LEAD, LeadStage.INACTIVE_LEAD):
        # A lead with a visit may not stay on Track A terminal paths.
        return TransitionTo(LeadStage.REACTIVATED, "visit recorded on pre-visit lead")
    if stage is LeadStage.REACTIVATED and visits.earliest_at > lead.last_stage_changed_at:
        return TransitionTo(LeadStage.ACTIVE_VISITOR, "first visit after reactivation")

    return _decay_post_visit(lead, visits, now, policy)


def evaluate_stage(
    lead: BuyerLead,
    visits: VisitSummary,
    now: datetime,
    policy: Optional[LifecyclePolicy] = None,
    trigger: Optional[ActivityType] = None,
) -> StageDecision:
    """
    Decide the next stage for a lead, or NoTransition.

    Args:
        lead: Snapshot of the lead
        visits: Visit summary for the lead, taken as of `now`
        now: Evaluation instant (UTC)
        policy: Thresholds; defaults to LifecyclePolicy()
        trigger: The activity that prompted this evaluation, if any

    Returns:
        TransitionTo(stage) for an edge of the stage graph, or NoTransition.
        A lead whose stage changed after `now` is left alone.
    """

    require_utc_timestamp("now", now)
    if policy is None:
        policy = LifecyclePolicy()

    if now < lead.last_stage_changed_at:
        return NoTransition("stage changed after evaluation instant")

    decision = _decide(lead, visits, now, policy, trigger)
    if isinstance(decision, TransitionTo) and not lead.stage.can_transition_to(decision.stage):
        raise RuntimeError(
            f"Evaluator produced illegal transition {lead.stage.value} -> {decision.stage.value}"
        )
    return decision


__all__ = [
    "LifecyclePolicy",
    "NoTransition",
    "TransitionTo",
    "StageDecision",
    "evaluate_stage",
]
