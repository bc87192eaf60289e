"""
Tests for the lifecycle API routes (`api/routers/lifecycle.py`).

The engine is wired to in-memory repositories through FastAPI dependency
overrides; requests run against the real wall clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_lifecycle_engine, get_settings
from api.main import app
from domain.lead import BuyerLead
from domain.lead_stage import LeadStage
from domain.lifecycle import LifecyclePolicy
from repositories.memory_repository import (
    InMemoryLeadRepository,
    InMemoryStageEventPublisher,
    InMemoryVisitRepository,
)
from services.lead_lifecycle_service import LifecycleEngine
from services.settings import Settings

CRON_SECRET = "test-cron-secret"


def make_lead(stage: LeadStage, age_days: int) -> BuyerLead:
    at = datetime.now(timezone.utc) - timedelta(days=age_days)
    return BuyerLead(lead_id=uuid4(), stage=stage, created_at=at, last_stage_changed_at=at)


@pytest.fixture
def leads() -> InMemoryLeadRepository:
    return InMemoryLeadRepository()


@pytest.fixture
def events() -> InMemoryStageEventPublisher:
    return InMemoryStageEventPublisher()


@pytest.fixture
def client(leads, events):
    settings = Settings(
        supabase_url=None,
        supabase_key=None,
        cron_secret=CRON_SECRET,
        policy=LifecyclePolicy(),
    )
    engine = LifecycleEngine(leads, InMemoryVisitRepository(), events)

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_lifecycle_engine] = lambda: engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ============================================================================
# Activity triggers
# ============================================================================

def test_activity_reactivates_at_risk_lead(client, leads, events) -> None:
    lead = make_lead(LeadStage.AT_RISK_LEAD, age_days=10)
    leads.add(lead)

    response = client.post(
        f"/api/v1/leads/{lead.lead_id}/activities",
        json={"activity_type": "INQUIRY"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["transitioned"] is True
    assert body["transition"]["from_stage"] == "AT_RISK_LEAD"
    assert body["transition"]["to_stage"] == "REACTIVATED"
    assert leads.get_lead(lead.lead_id).stage is LeadStage.REACTIVATED
    assert len(events.events) == 1


def test_activity_without_transition(client, leads, events) -> None:
    lead = make_lead(LeadStage.QUALIFIED, age_days=1)
    leads.add(lead)

    response = client.post(
        f"/api/v1/leads/{lead.lead_id}/activities",
        json={"activity_type": "LOGIN", "occurred_at": datetime.now(timezone.utc).isoformat()},
    )

    assert response.status_code == 200
    assert response.json() == {
        "lead_id": str(lead.lead_id),
        "transitioned": False,
        "transition": None,
    }
    assert events.events == []


def test_activity_for_unknown_lead_is_404(client) -> None:
    response = client.post(
        f"/api/v1/leads/{uuid4()}/activities",
        json={"activity_type": "INQUIRY"},
    )

    assert response.status_code == 404


def test_activity_with_naive_timestamp_is_400(client, leads) -> None:
    lead = make_lead(LeadStage.NEW_LEAD, age_days=1)
    leads.add(lead)

    response = client.post(
        f"/api/v1/leads/{lead.lead_id}/activities",
        json={"activity_type": "INQUIRY", "occurred_at": "2025-01-01T12:00:00"},
    )

    assert response.status_code == 400


def test_unknown_activity_type_is_422(client) -> None:
    response = client.post(
        f"/api/v1/leads/{uuid4()}/activities",
        json={"activity_type": "PHONE_CALL"},
    )

    assert response.status_code == 422


def test_evaluate_endpoint_applies_decay(client, leads) -> None:
    lead = make_lead(LeadStage.NEW_LEAD, age_days=8)
    leads.add(lead)

    response = client.post(f"/api/v1/leads/{lead.lead_id}/evaluate")

    assert response.status_code == 200
    assert response.json()["transition"]["to_stage"] == "AT_RISK_LEAD"


def test_repository_outage_is_503(client, leads) -> None:
    leads.unavailable = True

    response = client.post(f"/api/v1/leads/{uuid4()}/evaluate")

    assert response.status_code == 503


# ============================================================================
# Cron sweep
# ============================================================================

def test_cron_requires_bearer_secret(client) -> None:
    assert client.get("/api/cron/process-lifecycle").status_code == 401
    assert client.get(
        "/api/cron/process-lifecycle",
        headers={"Authorization": "Bearer wrong"},
    ).status_code == 401


def test_cron_without_configured_secret_is_500(client) -> None:
    settings = Settings(supabase_url=None, supabase_key=None, cron_secret=None, policy=LifecyclePolicy())
    app.dependency_overrides[get_settings] = lambda: settings

    response = client.get(
        "/api/cron/process-lifecycle",
        headers={"Authorization": f"Bearer {CRON_SECRET}"},
    )

    assert response.status_code == 500


def test_cron_runs_sweep(client, leads, events) -> None:
    stale = make_lead(LeadStage.NEW_LEAD, age_days=8)
    fresh = make_lead(LeadStage.NEW_LEAD, age_days=1)
    done = make_lead(LeadStage.INACTIVE_LEAD, age_days=100)
    for lead in (stale, fresh, done):
        leads.add(lead)

    response = client.get(
        "/api/cron/process-lifecycle",
        headers={"Authorization": f"Bearer {CRON_SECRET}"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["result"]["evaluated"] == 2
    assert body["result"]["transitioned"] == 1
    assert body["result"]["failed"] == []
    assert [e.lead_id for e in events.events] == [stale.lead_id]
    assert leads.get_lead(fresh.lead_id).stage is LeadStage.NEW_LEAD
