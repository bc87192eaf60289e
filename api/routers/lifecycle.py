"""
Lead Lifecycle API Endpoints.

- Activity triggers: record engagement for one lead and apply any transition.
- Scheduled sweep: daily cron job that applies time-decay transitions.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import NoReturn, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException

from api.dependencies import get_lifecycle_engine, get_settings
from api.models import (
    ActivityRequest,
    CronResponse,
    SweepResultResponse,
    TransitionResponse,
)
from domain.errors import (
    ConcurrencyConflict,
    InvalidStageData,
    LeadNotFound,
    RepositoryUnavailable,
)
from domain.lead import LeadActivity
from services.lead_lifecycle_service import LifecycleEngine
from services.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()
cron_router = APIRouter()


def _raise_http(error: Exception) -> NoReturn:
    """Map lifecycle errors to HTTP status codes."""

    if isinstance(error, LeadNotFound):
        raise HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InvalidStageData):
        raise HTTPException(status_code=422, detail=str(error))
    if isinstance(error, ConcurrencyConflict):
        raise HTTPException(status_code=409, detail=str(error))
    if isinstance(error, RepositoryUnavailable):
        raise HTTPException(status_code=503, detail=str(error))
    if isinstance(error, ValueError):
        raise HTTPException(status_code=400, detail=str(error))
    raise HTTPException(status_code=500, detail=f"Failed to process lead lifecycle: {str(error)}")


@router.post(
    "/leads/{lead_id}/activities",
    response_model=TransitionResponse,
    summary="Register Lead Activity",
    description="Record inbound engagement for a buyer lead and apply any resulting stage transition."
)
def register_lead_activity(
    lead_id: UUID,
    request: ActivityRequest,
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
):
    """
    Register an activity for a buyer lead.

    **Effects:**
    - `VISIT_CREATED` on a lead's first visit moves it to `ACTIVE_VISITOR`
    - `PREFERENCE_SAVED` qualifies a `NEW_LEAD` inside its qualification window
    - Reactivating activities move `AT_RISK_*` / `INACTIVE_*` leads to `REACTIVATED`

    **Example request:**
    ```json
    {
      "activity_type": "VISIT_CREATED",
      "occurred_at": "2025-01-01T12:00:00Z"
    }
    ```
    """
    now = datetime.now(timezone.utc)
    occurred_at = request.occurred_at
    if occurred_at is None:
        occurred_at = now
    elif occurred_at.tzinfo is None or occurred_at.utcoffset() is None:
        raise HTTPException(status_code=400, detail="occurred_at must be timezone-aware")
    else:
        occurred_at = occurred_at.astimezone(timezone.utc)

    try:
        activity = LeadActivity(
            activity_type=request.activity_type,
            occurred_at=occurred_at,
            preferences=request.preferences,
        )
        event = engine.register_activity(lead_id, activity, now=now)
    except Exception as e:
        _raise_http(e)

    return TransitionResponse.from_event(lead_id, event)


@router.post(
    "/leads/{lead_id}/evaluate",
    response_model=TransitionResponse,
    summary="Evaluate Lead Stage",
    description="Re-evaluate one buyer lead against the current time and apply any due transition."
)
def evaluate_lead(
    lead_id: UUID,
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
):
    try:
        event = engine.evaluate_and_apply(lead_id)
    except Exception as e:
        _raise_http(e)

    return TransitionResponse.from_event(lead_id, event)


@cron_router.get(
    "/process-lifecycle",
    response_model=CronResponse,
    summary="Process Lead Lifecycle",
    description="Daily cron job applying buyer lead time-decay transitions. Requires the CRON_SECRET bearer token."
)
def process_lifecycle(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
):
    """
    Run the lifecycle sweep.

    **Usage (scheduler):**
    - Schedule: `0 1 * * *` (daily, 1:00 AM IST)
    - Header: `Authorization: Bearer <CRON_SECRET>`

    Per-lead failures are reported in `result.failed`; they do not fail the job.
    """
    if not settings.cron_secret:
        logger.error("CRON_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Server misconfiguration")

    token = (authorization or "").removeprefix("Bearer ").strip()
    if not hmac.compare_digest(token.encode(), settings.cron_secret.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        result = engine.run_sweep()
    except Exception as e:
        logger.exception("Lifecycle cron failed")
        _raise_http(e)

    return CronResponse(
        success=True,
        result=SweepResultResponse.from_result(result),
        processed_at=datetime.now(timezone.utc),
    )
