"""
Domain: lifecycle error kinds.

- ConcurrencyConflict: a stage write was attempted against a stale read.
- RepositoryUnavailable: the persistence layer could not be reached or errored.
- InvalidStageData: a stored stage value is outside the known set.
- LeadNotFound: the lead does not exist (or is soft-deleted).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class LifecycleError(Exception):
    """Base class for lead lifecycle errors."""


class ConcurrencyConflict(LifecycleError):
    """Raised when a lead changed between read and conditional write."""

    def __init__(self, lead_id: UUID, expected_version: int) -> None:
        super().__init__(
            f"Lead {lead_id} changed since read (expected version {expected_version})"
        )
        self.lead_id = lead_id
        self.expected_version = expected_version


class RepositoryUnavailable(LifecycleError):
    """Raised when the persistence layer is unreachable or returns an error."""


class InvalidStageData(LifecycleError):
    """Raised when a lead record carries a stage value outside the known set."""

    def __init__(self, value: Any) -> None:
        super().__init__(f"Unknown lead stage: {value!r}")
        self.value = value


class LeadNotFound(LifecycleError):
    def __init__(self, lead_id: UUID) -> None:
        super().__init__(f"Lead not found: {lead_id}")
        self.lead_id = lead_id
