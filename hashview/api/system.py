"""
System Router - Health checks and monitoring
"""
from datetime import datetime

import redis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from hashview.config import settings
from hashview.dependencies import get_activity_recorder, get_db
from hashview.services.audit_log import SuspiciousActivityRecorder

router = APIRouter()


@router.get("/health")
async def health_check(
    db: Session = Depends(get_db),
    recorder: SuspiciousActivityRecorder = Depends(get_activity_recorder)
):
    """Status of the database, Redis and the suspicious activity log."""
    database_status = "unhealthy"
    try:
        db.execute(text("SELECT 1"))
        database_status = "healthy"
    except Exception:
        pass

    redis_status = "unhealthy"
    notification_queue_depth = 0
    try:
        r = redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        r.ping()
        redis_status = "healthy"
        notification_queue_depth = r.llen("notifications") or 0
    except Exception:
        pass

    return {
        "database": database_status,
        "redis": redis_status,
        "notification_queue_depth": notification_queue_depth,
        "suspicious_log_size": len(recorder),
        "suspicious_log_capacity": recorder.capacity,
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }
