"""
Tests for `services/settings.py`.
"""

from __future__ import annotations

import pytest

from domain.lead import ActivityType
from domain.lifecycle import LifecyclePolicy
from services.settings import load_settings


def test_defaults_when_environment_is_empty() -> None:
    settings = load_settings({})

    assert settings.supabase_url is None
    assert settings.cron_secret is None
    assert settings.policy == LifecyclePolicy()
    assert settings.max_conflict_retries == 3


def test_overrides_from_environment() -> None:
    settings = load_settings(
        {
            "SUPABASE_URL": "https://example.supabase.co",
            "SUPABASE_KEY": "service-key",
            "CRON_SECRET": "s3cret",
            "LIFECYCLE_QUALIFICATION_WINDOW_DAYS": "5",
            "LIFECYCLE_VISITOR_INACTIVE_DAYS": " 90 ",
            "LIFECYCLE_LEAD_INACTIVE_DAYS": "",
            "LIFECYCLE_REACTIVATING_ACTIVITIES": "inquiry, VISIT_CREATED",
            "LIFECYCLE_MAX_CONFLICT_RETRIES": "0",
        }
    )

    assert settings.supabase_url == "https://example.supabase.co"
    assert settings.cron_secret == "s3cret"
    assert settings.policy.qualification_window_days == 5
    assert settings.policy.visitor_inactive_days == 90
    assert settings.policy.lead_inactive_days == LifecyclePolicy().lead_inactive_days
    assert settings.policy.reactivating_activities == frozenset(
        {ActivityType.INQUIRY, ActivityType.VISIT_CREATED}
    )
    assert settings.max_conflict_retries == 0


@pytest.mark.parametrize(
    "environ, name",
    [
        ({"LIFECYCLE_VISITOR_AT_RISK_DAYS": "thirty"}, "LIFECYCLE_VISITOR_AT_RISK_DAYS"),
        ({"LIFECYCLE_REACTIVATING_ACTIVITIES": "INQUIRY,PHONE_CALL"}, "LIFECYCLE_REACTIVATING_ACTIVITIES"),
        ({"LIFECYCLE_MAX_CONFLICT_RETRIES": "-1"}, "LIFECYCLE_MAX_CONFLICT_RETRIES"),
    ],
)
def test_invalid_values_name_the_variable(environ, name: str) -> None:
    with pytest.raises(ValueError, match=name):
        load_settings(environ)


def test_threshold_below_one_is_rejected() -> None:
    with pytest.raises(ValueError):
        load_settings({"LIFECYCLE_REACTIVATED_AT_RISK_DAYS": "0"})
