"""
Lead repository (persistence).

This module provides *only* persistence operations for the BuyerLead domain
entity. No lifecycle rules (decay, reactivation, visit gates) belong here.

Stage writes are compare-and-set on the `version` column: the update only
matches the row if nobody wrote a stage since it was read.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional, Protocol
from uuid import UUID

from domain.errors import ConcurrencyConflict, LeadNotFound
from domain.lead import BuyerLead
from domain.lead_stage import LeadStage
from repositories.supabase_utils import PAGE_SIZE, execute, parse_utc_datetime, to_iso_utc

# Supabase table name for buyer lead records.
# Keep this aligned with your database schema.
_LEADS_TABLE: str = "leads"

_LEAD_COLUMNS: str = (
    "lead_id,stage,created_at_utc,last_stage_changed_at_utc,"
    "last_activity_at_utc,preferences,version"
)


class LeadRepository(Protocol):
    def get_lead(self, lead_id: UUID) -> Optional[BuyerLead]:
        ...

    def get_due_lead_ids(self, now: datetime) -> List[str]:
        ...

    def update_stage(
        self,
        lead_id: UUID,
        new_stage: LeadStage,
        changed_at: datetime,
        expected_version: int,
    ) -> BuyerLead:
        ...

    def record_activity(
        self,
        lead_id: UUID,
        occurred_at: datetime,
        preferences: Optional[Mapping[str, Any]] = None,
    ) -> BuyerLead:
        ...


def _row_to_lead(row: Mapping[str, Any]) -> BuyerLead:
    """Convert a Supabase row into a BuyerLead."""

    created_at = parse_utc_datetime(row["created_at_utc"])
    changed_raw = row.get("last_stage_changed_at_utc")
    activity_raw = row.get("last_activity_at_utc")

    return BuyerLead(
        lead_id=UUID(str(row["lead_id"])),
        stage=LeadStage.parse(row.get("stage")),
        created_at=created_at,
        last_stage_changed_at=parse_utc_datetime(changed_raw) if changed_raw else created_at,
        last_activity_at=parse_utc_datetime(activity_raw) if activity_raw else None,
        preferences=row.get("preferences") or None,
        version=int(row.get("version") or 0),
    )


class SupabaseLeadRepository:
    """Lead persistence backed by the Supabase `leads` table."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def get_lead(self, lead_id: UUID) -> Optional[BuyerLead]:
        """
        Fetch a lead by ID.

        Returns:
        - BuyerLead if found
        - None if no live (non-deleted) record exists for the given ID

        Raises InvalidStageData if the stored stage is unknown.
        """

        rows = execute(
            self._client.table(_LEADS_TABLE)
            .select(_LEAD_COLUMNS)
            .eq("lead_id", str(lead_id))
            .is_("deleted_at_utc", "null")
            .limit(1),
            "fetch lead",
        )
        if not rows:
            return None
        return _row_to_lead(rows[0])

    def get_due_lead_ids(self, now: datetime) -> List[str]:
        """
        List IDs of live leads that are not in a terminal stage and whose last
        stage change is not after `now`, paging through the table.

        IDs are returned as stored, unparsed. Rows with an unknown or NULL
        stage, or a NULL stage-change time, are included so the sweep reports
        or evaluates them individually instead of skipping them.
        """

        terminal = ",".join(sorted(stage.value for stage in LeadStage if stage.is_terminal))
        now_iso = to_iso_utc(now, name="now")

        lead_ids: List[str] = []
        offset = 0
        while True:
            rows = execute(
                self._client.table(_LEADS_TABLE)
                .select("lead_id")
                .or_(f"stage.is.null,stage.not.in.({terminal})")
                .or_(
                    f'last_stage_changed_at_utc.is.null,last_stage_changed_at_utc.lte."{now_iso}"'
                )
                .is_("deleted_at_utc", "null")
                .order("lead_id")
                .range(offset, offset + PAGE_SIZE - 1),
                "list leads due for evaluation",
            )
            lead_ids.extend(str(row["lead_id"]) for row in rows)
            if len(rows) < PAGE_SIZE:
                break
            offset += len(rows)

        return lead_ids

    def update_stage(
        self,
        lead_id: UUID,
        new_stage: LeadStage,
        changed_at: datetime,
        expected_version: int,
    ) -> BuyerLead:
        """
        Conditionally write a new stage.

        Raises:
            ConcurrencyConflict: if the row's version no longer matches
            (or the lead disappeared) since it was read.
        """

        payload: dict[str, Any] = {
            "stage": new_stage.value,
            "last_stage_changed_at_utc": to_iso_utc(changed_at, name="changed_at"),
            "version": expected_version + 1,
        }
        rows = execute(
            self._client.table(_LEADS_TABLE)
            .update(payload)
            .eq("lead_id", str(lead_id))
            .eq("version", expected_version)
            .is_("deleted_at_utc", "null"),
            "update lead stage",
        )
        if not rows:
            raise ConcurrencyConflict(lead_id, expected_version)
        return _row_to_lead(rows[0])

    def record_activity(
        self,
        lead_id: UUID,
        occurred_at: datetime,
        preferences: Optional[Mapping[str, Any]] = None,
    ) -> BuyerLead:
        """
        Record inbound engagement.

        last_activity_at only moves forward; stage, last_stage_changed_at and
        version are never touched here.
        """

        occurred_iso = to_iso_utc(occurred_at, name="occurred_at")

        if preferences is not None:
            execute(
                self._client.table(_LEADS_TABLE)
                .update({"preferences": dict(preferences)})
                .eq("lead_id", str(lead_id))
                .is_("deleted_at_utc", "null"),
                "save lead preferences",
            )

        execute(
            self._client.table(_LEADS_TABLE)
            .update({"last_activity_at_utc": occurred_iso})
            .eq("lead_id", str(lead_id))
            .is_("deleted_at_utc", "null")
            .or_(
                f'last_activity_at_utc.is.null,last_activity_at_utc.lt."{occurred_iso}"'
            ),
            "record lead activity",
        )

        lead = self.get_lead(lead_id)
        if lead is None:
            raise LeadNotFound(lead_id)
        return lead


__all__ = [
    "LeadRepository",
    "SupabaseLeadRepository",
]
