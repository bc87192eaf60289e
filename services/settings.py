"""
Runtime settings.

Values are read from the environment after loading the project's .env file.
Settings are built on demand and passed explicitly; nothing is cached at
module level.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from dotenv import load_dotenv

from domain.lead import ActivityType
from domain.lifecycle import LifecyclePolicy

# Look for .env in the project root
_ENV_PATH = Path(__file__).parent.parent / ".env"

DEFAULT_MAX_CONFLICT_RETRIES = 3

# Environment variable -> LifecyclePolicy field
_POLICY_ENV_VARS: Mapping[str, str] = {
    "LIFECYCLE_QUALIFICATION_WINDOW_DAYS": "qualification_window_days",
    "LIFECYCLE_QUALIFIED_AT_RISK_DAYS": "qualified_at_risk_days",
    "LIFECYCLE_LEAD_INACTIVE_DAYS": "lead_inactive_days",
    "LIFECYCLE_VISITOR_AT_RISK_DAYS": "visitor_at_risk_days",
    "LIFECYCLE_VISITOR_INACTIVE_DAYS": "visitor_inactive_days",
    "LIFECYCLE_REACTIVATED_AT_RISK_DAYS": "reactivated_at_risk_days",
    "LIFECYCLE_REACTIVATED_VISITOR_AT_RISK_DAYS": "reactivated_visitor_at_risk_days",
}


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    cron_secret: Optional[str]
    policy: LifecyclePolicy
    max_conflict_retries: int = DEFAULT_MAX_CONFLICT_RETRIES


def _int_from_env(environ: Mapping[str, str], name: str) -> Optional[int]:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _activities_from_env(
    environ: Mapping[str, str], name: str
) -> Optional[FrozenSet[ActivityType]]:
    """Parse a comma-separated list of ActivityType values."""

    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    activities = set()
    for item in raw.split(","):
        item = item.strip().upper()
        if not item:
            continue
        try:
            activities.add(ActivityType(item))
        except ValueError:
            raise ValueError(f"{name} contains an unknown activity type: {item!r}") from None
    return frozenset(activities)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: Mapping to read instead of os.environ (the .env file is only
            loaded when reading the real environment).

    Raises:
        ValueError: if a numeric variable is not an integer or a threshold is < 1.
    """

    if environ is None:
        load_dotenv(dotenv_path=_ENV_PATH)
        environ = os.environ

    overrides = {}
    for env_name, field_name in _POLICY_ENV_VARS.items():
        value = _int_from_env(environ, env_name)
        if value is not None:
            overrides[field_name] = value

    reactivating = _activities_from_env(environ, "LIFECYCLE_REACTIVATING_ACTIVITIES")
    if reactivating is not None:
        overrides["reactivating_activities"] = reactivating

    retries = _int_from_env(environ, "LIFECYCLE_MAX_CONFLICT_RETRIES")
    if retries is None:
        retries = DEFAULT_MAX_CONFLICT_RETRIES
    if retries < 0:
        raise ValueError("LIFECYCLE_MAX_CONFLICT_RETRIES must be >= 0")

    return Settings(
        supabase_url=environ.get("SUPABASE_URL"),
        supabase_key=environ.get("SUPABASE_KEY"),
        cron_secret=environ.get("CRON_SECRET"),
        policy=LifecyclePolicy(**overrides),
        max_conflict_retries=retries,
    )


__all__ = ["Settings", "load_settings"]
