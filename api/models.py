"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.events import StageChangeEvent
from domain.lead import ActivityType
from domain.lead_stage import LeadStage
from services.lead_lifecycle_service import SweepResult


# ============================================================================
# Stage Change Models
# ============================================================================

class StageChangeResponse(BaseModel):
    """A single applied stage transition."""
    lead_id: UUID
    from_stage: LeadStage
    to_stage: LeadStage
    occurred_at: datetime

    @classmethod
    def from_event(cls, event: StageChangeEvent) -> "StageChangeResponse":
        return cls(
            lead_id=event.lead_id,
            from_stage=event.from_stage,
            to_stage=event.to_stage,
            occurred_at=event.occurred_at,
        )


class TransitionResponse(BaseModel):
    """Result of evaluating one lead."""
    lead_id: UUID
    transitioned: bool
    transition: Optional[StageChangeResponse] = None

    class Config:
        json_schema_extra = {
            "example": {
                "lead_id": "123e4567-e89b-12d3-a456-426614174000",
                "transitioned": True,
                "transition": {
                    "lead_id": "123e4567-e89b-12d3-a456-426614174000",
                    "from_stage": "AT_RISK_VISITOR",
                    "to_stage": "REACTIVATED",
                    "occurred_at": "2025-01-01T12:00:00Z"
                }
            }
        }

    @classmethod
    def from_event(cls, lead_id: UUID, event: Optional[StageChangeEvent]) -> "TransitionResponse":
        return cls(
            lead_id=lead_id,
            transitioned=event is not None,
            transition=StageChangeResponse.from_event(event) if event else None,
        )


# ============================================================================
# Activity Models
# ============================================================================

class ActivityRequest(BaseModel):
    """Inbound engagement for a lead."""
    activity_type: ActivityType = Field(
        ...,
        description="Kind of engagement (e.g. INQUIRY, VISIT_CREATED, MANUAL_REACTIVATION)"
    )
    occurred_at: Optional[datetime] = Field(
        None,
        description="When the activity happened (timezone-aware). Defaults to now."
    )
    preferences: Optional[Dict[str, Any]] = Field(
        None,
        description="Saved buyer preferences (PREFERENCE_SAVED only)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "activity_type": "PREFERENCE_SAVED",
                "occurred_at": "2025-01-01T12:00:00Z",
                "preferences": {"bhk": 2, "budget_max": 15000000}
            }
        }


# ============================================================================
# Sweep Models
# ============================================================================

class SweepFailureResponse(BaseModel):
    lead_id: str
    error: str
    error_type: str


class SweepResultResponse(BaseModel):
    """Summary of a lifecycle sweep."""
    evaluated: int
    transitioned: int
    succeeded: int
    failed: List[SweepFailureResponse]

    @classmethod
    def from_result(cls, result: SweepResult) -> "SweepResultResponse":
        return cls(
            evaluated=result.evaluated,
            transitioned=result.transitioned,
            succeeded=result.succeeded,
            failed=[
                SweepFailureResponse(lead_id=f.lead_id, error=f.error, error_type=f.error_type)
                for f in result.failed
            ],
        )


class CronResponse(BaseModel):
    """Response for the scheduled lifecycle job."""
    success: bool
    result: SweepResultResponse
    processed_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "result": {
                    "evaluated": 120,
                    "transitioned": 14,
                    "succeeded": 119,
                    "failed": [
                        {
                            "lead_id": "123e4567-e89b-12d3-a456-426614174000",
                            "error": "Lead changed since read (expected version 3)",
                            "error_type": "ConcurrencyConflict"
                        }
                    ]
                },
                "processed_at": "2025-01-01T19:30:00Z"
            }
        }
