"""
Rate & Duplicate Guard - cheap pre-checks before any geo/security work

Both checks are read-then-act. Two near-simultaneous submissions may
both pass the last slot of the day; that overshoot is accepted rather
than locking every submission.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from hashview.config import settings
from hashview.db.models import Review

logger = logging.getLogger(__name__)


def start_of_local_day(now: datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Local midnight for `now`, returned as naive UTC to match stored timestamps.

    `now` is naive UTC (as produced by datetime.utcnow()) or timezone-aware.
    """
    tz = ZoneInfo(tz_name or settings.REVIEW_TIMEZONE)
    aware = now if now.tzinfo else now.replace(tzinfo=timezone.utc)
    local = aware.astimezone(tz)
    local_midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


class RateGuardService:
    """Per-user daily ceiling and same-business/same-day suppression"""

    def __init__(self, daily_limit: Optional[int] = None, tz_name: Optional[str] = None):
        self.daily_limit = settings.REVIEW_DAILY_LIMIT if daily_limit is None else daily_limit
        self.tz_name = tz_name

    def count_user_reviews_today(self, db: Session, user_id: int, now: datetime) -> int:
        day_start = start_of_local_day(now, self.tz_name)
        return db.query(func.count(Review.id)).filter(
            and_(
                Review.user_id == user_id,
                Review.created_at >= day_start
            )
        ).scalar() or 0

    def check_rate_limit(self, db: Session, user_id: int, now: datetime) -> bool:
        """True while the user is still under today's ceiling."""
        count = self.count_user_reviews_today(db, user_id, now)
        allowed = count < self.daily_limit
        if not allowed:
            logger.warning(f"User {user_id} hit daily review limit ({count}/{self.daily_limit})")
        return allowed

    def check_duplicate(self, db: Session, user_id: int, business_id: int, now: datetime) -> bool:
        """True if the user already reviewed this business today."""
        day_start = start_of_local_day(now, self.tz_name)
        existing = db.query(Review.id).filter(
            and_(
                Review.user_id == user_id,
                Review.business_id == business_id,
                Review.created_at >= day_start
            )
        ).first()
        return existing is not None

    def count_device_reviews_today(self, db: Session, device_id: Optional[str], now: datetime) -> int:
        if not device_id:
            return 0
        day_start = start_of_local_day(now, self.tz_name)
        return db.query(func.count(Review.id)).filter(
            and_(
                Review.device_id == device_id,
                Review.created_at >= day_start
            )
        ).scalar() or 0


# Singleton instance
rate_guard_service = RateGuardService()
