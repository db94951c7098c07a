"""
Admin Router - Suspicious activity audit trail
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from hashview.dependencies import get_activity_recorder, verify_api_key
from hashview.services.audit_log import SuspiciousActivityRecorder

router = APIRouter()


@router.get("/suspicious-activities", dependencies=[Depends(verify_api_key)])
async def list_suspicious_activities(
    user_id: Optional[int] = Query(None, description="Filter by user"),
    event_type: Optional[str] = Query(None, description="Filter by event type"),
    limit: int = Query(100, ge=1, le=1000),
    recorder: SuspiciousActivityRecorder = Depends(get_activity_recorder)
):
    """
    Recent flagged/blocked events, newest first.

    In-memory only: bounded in size and cleared on restart.
    """
    entries = recorder.query(user_id=user_id, event_type=event_type, limit=limit)
    return {
        "count": len(entries),
        "capacity": recorder.capacity,
        "stored": len(recorder),
        "activities": [entry.to_dict() for entry in entries]
    }
