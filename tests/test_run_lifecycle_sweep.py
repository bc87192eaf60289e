"""
Tests for `scripts/run_lifecycle_sweep.py`.

Covers:
- --as-of parsing: timezone required, normalized to UTC.
- Exit codes: 0 when every lead succeeded, 1 when any lead failed, 130 on interrupt.
"""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from domain.lead import BuyerLead
from domain.lead_stage import LeadStage
from domain.lifecycle import LifecyclePolicy
from repositories.memory_repository import (
    InMemoryLeadRepository,
    InMemoryStageEventPublisher,
    InMemoryVisitRepository,
)
from scripts import run_lifecycle_sweep
from services.lead_lifecycle_service import LifecycleEngine
from services.settings import Settings

AS_OF = "2025-01-08T19:30:00Z"
CREATED = datetime(2025, 1, 1, 4, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2025-01-01T19:30:00Z", datetime(2025, 1, 1, 19, 30, tzinfo=timezone.utc)),
        ("2025-01-02T01:00:00+05:30", datetime(2025, 1, 1, 19, 30, tzinfo=timezone.utc)),
    ],
)
def test_parse_as_of_normalizes_to_utc(value: str, expected: datetime) -> None:
    parsed = run_lifecycle_sweep.parse_as_of(value)

    assert parsed == expected
    assert parsed.utcoffset() == timedelta(0)


@pytest.mark.parametrize("value", ["2025-01-01T19:30:00", "yesterday", ""])
def test_parse_as_of_rejects_naive_or_garbage(value: str) -> None:
    with pytest.raises(argparse.ArgumentTypeError):
        run_lifecycle_sweep.parse_as_of(value)


def _use_engine(monkeypatch: pytest.MonkeyPatch, engine) -> None:
    settings = Settings(supabase_url=None, supabase_key=None, cron_secret=None, policy=LifecyclePolicy())
    monkeypatch.setattr(run_lifecycle_sweep, "load_settings", lambda: settings)
    monkeypatch.setattr(run_lifecycle_sweep, "create_lifecycle_engine", lambda _settings: engine)
    monkeypatch.setattr("sys.argv", ["run_lifecycle_sweep.py", "--as-of", AS_OF])


def _engine_with_leads(*lead_ids: UUID) -> tuple:
    leads = InMemoryLeadRepository(
        [
            BuyerLead(
                lead_id=lead_id,
                stage=LeadStage.NEW_LEAD,
                created_at=CREATED,
                last_stage_changed_at=CREATED,
            )
            for lead_id in lead_ids
        ]
    )
    engine = LifecycleEngine(leads, InMemoryVisitRepository(), InMemoryStageEventPublisher())
    return engine, leads


def test_main_exits_zero_and_prints_summary(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    engine, leads = _engine_with_leads(UUID(int=1), UUID(int=2))
    _use_engine(monkeypatch, engine)

    assert run_lifecycle_sweep.main() == 0

    out = capsys.readouterr().out
    assert "LIFECYCLE SWEEP SUMMARY" in out
    assert "Transitioned:     2" in out
    assert "No failures!" in out
    assert leads.get_lead(UUID(int=1)).stage is LeadStage.AT_RISK_LEAD


def test_main_exits_one_when_a_lead_fails(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    engine, leads = _engine_with_leads(UUID(int=1), UUID(int=2))
    leads.fail_updates_for.add(UUID(int=2))
    _use_engine(monkeypatch, engine)

    assert run_lifecycle_sweep.main() == 1

    out = capsys.readouterr().out
    assert "Failed:           1" in out
    assert f"{UUID(int=2)}: [ConcurrencyConflict]" in out


class InterruptedEngine:
    def run_sweep(self, now=None):
        raise KeyboardInterrupt


def test_main_exits_130_on_interrupt(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_engine(monkeypatch, InterruptedEngine())

    assert run_lifecycle_sweep.main() == 130
