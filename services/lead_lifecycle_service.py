"""
Lead lifecycle service.

Drives the pure stage evaluator (domain/lifecycle.py) against persisted leads.

Entry points:
- Triggered: register_activity() / on_visit_created() / on_preference_saved() /
  reactivate() record the engagement and evaluate exactly that lead.
- Batch: run_sweep() re-evaluates every live, non-terminal lead as of one
  instant. It is invoked by an external scheduler (the cron route or the CLI).

Guarantees:
- Every stage write is a compare-and-set on the lead's version. A lost race is
  re-read and re-evaluated a bounded number of times, then surfaced.
- One StageChangeEvent is published per applied transition, after the write.
  A publishing failure is logged and never undoes the write.
- A sweep isolates failures per lead and reports them in the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.errors import ConcurrencyConflict, LeadNotFound
from domain.events import StageChangeEvent
from domain.lead import ActivityType, BuyerLead, LeadActivity
from domain.lifecycle import LifecyclePolicy, NoTransition, evaluate_stage
from domain.time import Clock, SystemClock, require_utc_timestamp
from repositories.lead_repository import LeadRepository
from repositories.stage_event_repository import StageEventPublisher
from repositories.visit_repository import VisitRepository
from services.settings import DEFAULT_MAX_CONFLICT_RETRIES, Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SweepFailure:
    """A lead the sweep could not evaluate or update (lead_id as stored)."""
    lead_id: str
    error: str
    error_type: str


@dataclass(frozen=True, slots=True)
class SweepResult:
    """
    Outcome of a batch sweep.

    evaluated: Number of leads the sweep attempted
    transitioned: Number of leads whose stage changed
    failed: Per-lead failures (empty if every lead was processed)
    """
    evaluated: int
    transitioned: int
    failed: List[SweepFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.evaluated - len(self.failed)

    def to_payload(self) -> dict[str, Any]:
        return {
            "evaluated": self.evaluated,
            "transitioned": self.transitioned,
            "succeeded": self.succeeded,
            "failed": [
                {"lead_id": f.lead_id, "error": f.error, "error_type": f.error_type}
                for f in self.failed
            ],
        }


class LifecycleEngine:
    def __init__(
        self,
        lead_repository: LeadRepository,
        visit_repository: VisitRepository,
        event_publisher: StageEventPublisher,
        clock: Optional[Clock] = None,
        policy: Optional[LifecyclePolicy] = None,
        max_conflict_retries: int = DEFAULT_MAX_CONFLICT_RETRIES,
    ) -> None:
        if max_conflict_retries < 0:
            raise ValueError("max_conflict_retries must be >= 0")
        self._leads = lead_repository
        self._visits = visit_repository
        self._events = event_publisher
        self._clock = clock or SystemClock()
        self._policy = policy or LifecyclePolicy()
        self._max_conflict_retries = max_conflict_retries

    @property
    def policy(self) -> LifecyclePolicy:
        return self._policy

    def _resolve_now(self, now: Optional[datetime]) -> datetime:
        if now is None:
            now = self._clock.now()
        require_utc_timestamp("now", now)
        return now

    # ------------------------------------------------------------------
    # Single lead
    # ------------------------------------------------------------------

    def _apply(
        self,
        lead: BuyerLead,
        now: datetime,
        trigger: Optional[ActivityType],
    ) -> Optional[StageChangeEvent]:
        visits = self._visits.summarize_visits(lead.lead_id, now)
        decision = evaluate_stage(lead, visits, now, self._policy, trigger)

        if isinstance(decision, NoTransition):
            logger.debug(
                "No stage transition for lead %s (%s)",
                lead.lead_id,
                decision.reason,
                extra={"lead_id": str(lead.lead_id), "stage": lead.stage.value},
            )
            return None

        self._leads.update_stage(lead.lead_id, decision.stage, now, lead.version)

        event = StageChangeEvent(
            lead_id=lead.lead_id,
            from_stage=lead.stage,
            to_stage=decision.stage,
            occurred_at=now,
        )
        logger.info(
            "Lead %s moved %s -> %s (%s)",
            lead.lead_id,
            lead.stage.value,
            decision.stage.value,
            decision.reason,
            extra={
                "lead_id": str(lead.lead_id),
                "from_stage": lead.stage.value,
                "to_stage": decision.stage.value,
                "trigger": trigger.value if trigger else None,
            },
        )
        self._emit(event)
        return event

    def _emit(self, event: StageChangeEvent) -> None:
        # The stage write is already committed; delivery is at-least-once.
        try:
            self._events.publish(event)
        except Exception:
            logger.warning(
                "Failed to publish stage change for lead %s",
                event.lead_id,
                exc_info=True,
                extra=event.to_payload(),
            )

    def _evaluate_with_retry(
        self,
        lead_id: UUID,
        now: datetime,
        trigger: Optional[ActivityType],
    ) -> Optional[StageChangeEvent]:
        conflicts = 0
        while True:
            lead = self._leads.get_lead(lead_id)
            if lead is None:
                raise LeadNotFound(lead_id)
            try:
                return self._apply(lead, now, trigger)
            except ConcurrencyConflict:
                conflicts += 1
                if conflicts > self._max_conflict_retries:
                    logger.warning(
                        "Giving up on lead %s after %d concurrent updates",
                        lead_id,
                        conflicts,
                        extra={"lead_id": str(lead_id), "conflicts": conflicts},
                    )
                    raise
                logger.info(
                    "Lead %s changed concurrently, re-evaluating",
                    lead_id,
                    extra={"lead_id": str(lead_id), "attempt": conflicts},
                )

    def evaluate_and_apply(
        self,
        lead_id: UUID,
        now: Optional[datetime] = None,
        trigger: Optional[ActivityType] = None,
    ) -> Optional[StageChangeEvent]:
        """
        Evaluate one lead and apply the resulting transition, if any.

        Args:
            lead_id: Lead to evaluate
            now: Evaluation instant (UTC); defaults to the engine's clock
            trigger: Activity that prompted the evaluation, if any

        Returns:
            The StageChangeEvent for the applied transition, or None.

        Raises:
            LeadNotFound, InvalidStageData, RepositoryUnavailable, and
            ConcurrencyConflict once retries are exhausted. Callers inside a
            larger transaction decide whether to roll back.
        """

        return self._evaluate_with_retry(lead_id, self._resolve_now(now), trigger)

    def register_activity(
        self,
        lead_id: UUID,
        activity: LeadActivity,
        now: Optional[datetime] = None,
    ) -> Optional[StageChangeEvent]:
        """
        Record inbound engagement, then evaluate the lead with it as trigger.

        An AT_RISK_* / INACTIVE_* lead moves to REACTIVATED when the activity
        type is one of the policy's reactivating activities.
        """

        now = self._resolve_now(now)
        self._leads.record_activity(lead_id, activity.occurred_at, activity.preferences)
        return self._evaluate_with_retry(lead_id, now, activity.activity_type)

    def on_visit_created(
        self,
        lead_id: UUID,
        occurred_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Optional[StageChangeEvent]:
        """Called once the visit row exists; the first visit moves the lead to Track B."""

        now = self._resolve_now(now)
        activity = LeadActivity(ActivityType.VISIT_CREATED, occurred_at or now)
        return self.register_activity(lead_id, activity, now)

    def on_preference_saved(
        self,
        lead_id: UUID,
        preferences: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Optional[StageChangeEvent]:
        """Save preferences; a NEW_LEAD inside its qualification window becomes QUALIFIED."""

        now = self._resolve_now(now)
        activity = LeadActivity(ActivityType.PREFERENCE_SAVED, now, preferences)
        return self.register_activity(lead_id, activity, now)

    def reactivate(self, lead_id: UUID, now: Optional[datetime] = None) -> Optional[StageChangeEvent]:
        now = self._resolve_now(now)
        activity = LeadActivity(ActivityType.MANUAL_REACTIVATION, now)
        return self.register_activity(lead_id, activity, now)

    # ------------------------------------------------------------------
    # Batch sweep
    # ------------------------------------------------------------------

    def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Re-evaluate every lead due for evaluation as of `now`.

        Each lead is its own unit of work: no lock is held across leads, and a
        failure on one lead is recorded in the result instead of aborting the
        sweep. Stopping between leads leaves every lead consistent. Leads are
        loaded one at a time, so a malformed row (bad ID, timestamps, unknown
        stage) fails only that lead.

        Raises:
            RepositoryUnavailable only if the list of due leads cannot be read.
        """

        now = self._resolve_now(now)
        lead_ids = self._leads.get_due_lead_ids(now)

        evaluated = 0
        transitioned = 0
        failed: List[SweepFailure] = []

        for raw_id in lead_ids:
            evaluated += 1
            try:
                event = self._evaluate_with_retry(UUID(raw_id), now, None)
            except Exception as e:
                logger.exception(
                    "Lifecycle sweep failed for lead %s",
                    raw_id,
                    extra={"lead_id": raw_id, "error_type": type(e).__name__},
                )
                failed.append(
                    SweepFailure(lead_id=raw_id, error=str(e), error_type=type(e).__name__)
                )
                continue
            if event is not None:
                transitioned += 1

        result = SweepResult(evaluated=evaluated, transitioned=transitioned, failed=failed)
        logger.info(
            "Lifecycle sweep processed %d leads: %d transitioned, %d failed",
            result.evaluated,
            result.transitioned,
            len(result.failed),
            extra={"as_of": now.isoformat(), **result.to_payload()},
        )
        return result


def create_lifecycle_engine(settings: Settings, client: Any = None) -> LifecycleEngine:
    """
    Wire a LifecycleEngine to Supabase.

    Args:
        settings: Loaded settings (credentials, policy, retry bound)
        client: Existing Supabase client; created from settings when omitted
    """

    from repositories.client import create_supabase_client
    from repositories.lead_repository import SupabaseLeadRepository
    from repositories.stage_event_repository import SupabaseStageEventPublisher
    from repositories.visit_repository import SupabaseVisitRepository

    if client is None:
        client = create_supabase_client(settings.supabase_url, settings.supabase_key)

    return LifecycleEngine(
        lead_repository=SupabaseLeadRepository(client),
        visit_repository=SupabaseVisitRepository(client),
        event_publisher=SupabaseStageEventPublisher(client),
        policy=settings.policy,
        max_conflict_retries=settings.max_conflict_retries,
    )


__all__ = [
    "LifecycleEngine",
    "SweepFailure",
    "SweepResult",
    "create_lifecycle_engine",
]
