"""
Tests for `domain/lead.py` and `domain/visit.py`.

Covers contract rules:
- Lead timestamps are required and must be UTC.
- with_stage() only follows edges of the stage graph and bumps the version.
- with_activity() never moves last_activity_at backwards and never touches the stage.
- Visit summaries bracket the visits they were built from.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from domain.lead import ActivityType, BuyerLead, LeadActivity
from domain.lead_stage import LeadStage
from domain.visit import Visit, VisitSummary

LEAD_ID = UUID("00000000-0000-0000-0000-000000000001")
CREATED = datetime(2025, 1, 1, 6, 0, 0, tzinfo=timezone.utc)


def make_lead(**overrides) -> BuyerLead:
    fields = dict(
        lead_id=LEAD_ID,
        stage=LeadStage.NEW_LEAD,
        created_at=CREATED,
        last_stage_changed_at=CREATED,
    )
    fields.update(overrides)
    return BuyerLead(**fields)


def test_lead_timestamps_must_be_utc() -> None:
    """Verify naive and non-UTC timestamps are rejected at instantiation."""

    with pytest.raises(ValueError):
        make_lead(created_at=datetime(2025, 1, 1), last_stage_changed_at=datetime(2025, 1, 1))

    with pytest.raises(ValueError):
        make_lead(last_activity_at=datetime(2025, 1, 1, tzinfo=timezone(timedelta(hours=5, minutes=30))))


def test_lead_stage_change_cannot_precede_creation() -> None:
    with pytest.raises(ValueError):
        make_lead(last_stage_changed_at=CREATED - timedelta(seconds=1))


def test_lead_stage_must_be_enum() -> None:
    with pytest.raises(TypeError):
        make_lead(stage="NEW_LEAD")


def test_lead_is_immutable() -> None:
    lead = make_lead()
    with pytest.raises(FrozenInstanceError):
        lead.stage = LeadStage.QUALIFIED  # type: ignore[misc]


@pytest.mark.parametrize(
    "preferences, expected",
    [
        (None, False),
        ({}, False),
        ({"bhk": 2}, True),
    ],
)
def test_has_preferences(preferences, expected: bool) -> None:
    assert make_lead(preferences=preferences).has_preferences is expected


def test_with_stage_returns_new_instance_and_bumps_version() -> None:
    lead = make_lead(version=4)
    changed_at = CREATED + timedelta(days=2)

    moved = lead.with_stage(LeadStage.QUALIFIED, changed_at)

    assert moved.stage is LeadStage.QUALIFIED
    assert moved.last_stage_changed_at == changed_at
    assert moved.version == 5
    assert lead.stage is LeadStage.NEW_LEAD
    assert lead.version == 4


def test_with_stage_rejects_edges_outside_graph() -> None:
    lead = make_lead(stage=LeadStage.AT_RISK_LEAD)
    with pytest.raises(ValueError):
        lead.with_stage(LeadStage.NEW_LEAD, CREATED + timedelta(days=1))


def test_with_activity_keeps_latest_and_preserves_stage() -> None:
    lead = make_lead(last_activity_at=CREATED + timedelta(days=3), version=2)

    earlier = lead.with_activity(CREATED + timedelta(days=1))
    later = lead.with_activity(CREATED + timedelta(days=5), preferences={"city": "Pune"})

    assert earlier.last_activity_at == CREATED + timedelta(days=3)
    assert later.last_activity_at == CREATED + timedelta(days=5)
    assert later.preferences == {"city": "Pune"}
    assert later.stage is LeadStage.NEW_LEAD
    assert later.version == 2
    assert later.last_stage_changed_at == CREATED


def test_lead_activity_requires_utc() -> None:
    with pytest.raises(ValueError):
        LeadActivity(ActivityType.LOGIN, datetime(2025, 1, 1))


def test_visit_summary_from_visits() -> None:
    visits = [
        Visit(UUID(int=10), LEAD_ID, CREATED + timedelta(days=3)),
        Visit(UUID(int=11), LEAD_ID, CREATED + timedelta(days=1)),
        Visit(UUID(int=12), LEAD_ID, CREATED + timedelta(days=9)),
    ]

    summary = VisitSummary.from_visits(visits)

    assert summary.count == 3
    assert summary.has_visit is True
    assert summary.earliest_at == CREATED + timedelta(days=1)
    assert summary.latest_at == CREATED + timedelta(days=9)


def test_visit_summary_empty() -> None:
    assert VisitSummary.from_visits([]) == VisitSummary.empty()
    assert VisitSummary.empty().has_visit is False


def test_visit_summary_rejects_inconsistent_fields() -> None:
    with pytest.raises(ValueError):
        VisitSummary(count=0, latest_at=CREATED)
    with pytest.raises(ValueError):
        VisitSummary(count=2)
