"""
Review Commit Service - writes an accepted review as one unit of work

Unit contents: reward coupon, review, business rating aggregate and
template usage counter. The coupon is written first so the review is
inserted already carrying its reward; everything is flushed and
committed in a single transaction and rolled back together on error.

The rating aggregate is a read-all-then-write-one operation, so each
commit holds a per-business lock (plus SELECT ... FOR UPDATE on the
business row where the database supports it) until the transaction is
committed. Deleting a review takes the same lock before the aggregate
is recomputed.
"""
import logging
import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hashview.config import settings
from hashview.db.models import Business, Coupon, Review
from hashview.exceptions import CommitFailureError
from hashview.schemas.submission import ReviewSubmission
from hashview.services.coupon_service import CouponService, coupon_service as default_coupon_service

logger = logging.getLogger(__name__)


class BusinessLockRegistry:
    """One lock per business id, created on demand"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = defaultdict(threading.Lock)

    def lock_for(self, business_id: int) -> threading.Lock:
        with self._guard:
            return self._locks[business_id]


class ReviewCommitService:
    """Persists review + coupon + rating aggregate atomically"""

    def __init__(
        self,
        coupons: Optional[CouponService] = None,
        locks: Optional[BusinessLockRegistry] = None,
        max_attempts: Optional[int] = None
    ):
        self.coupons = coupons if coupons is not None else default_coupon_service
        self.locks = locks if locks is not None else BusinessLockRegistry()
        self.max_attempts = settings.COUPON_COMMIT_MAX_ATTEMPTS if max_attempts is None else max_attempts

    def commit(
        self,
        db: Session,
        submission: ReviewSubmission,
        business: Business,
        security_metadata: Dict[str, Any],
        now: Optional[datetime] = None
    ) -> Tuple[Review, Coupon]:
        """
        Write the review unit, retrying on coupon code conflicts.

        Raises:
            CommitFailureError: the unit could not be written; nothing was applied.
        """
        now = now or datetime.utcnow()
        business_id = business.id

        with self.locks.lock_for(business_id):
            for attempt in range(1, self.max_attempts + 1):
                try:
                    code = self.coupons.generate_unique_code(db)
                    review, coupon = self._write_unit(db, submission, business_id, security_metadata, code, now)
                    db.commit()
                    db.refresh(review)
                    db.refresh(coupon)
                    logger.info(
                        f"Review {review.id} committed for business {business_id} "
                        f"with coupon {coupon.code}"
                    )
                    return review, coupon
                except IntegrityError as e:
                    db.rollback()
                    if not self._code_taken(db, code):
                        logger.error(f"Integrity error committing review for business {business_id}: {e.orig}")
                        raise CommitFailureError() from e
                    logger.warning(
                        f"Coupon code {code} taken while writing review for business {business_id} "
                        f"(attempt {attempt}/{self.max_attempts})"
                    )
                except Exception as e:
                    db.rollback()
                    logger.error(f"Error committing review for business {business_id}: {e}")
                    raise CommitFailureError() from e

        raise CommitFailureError()

    def remove(self, db: Session, review: Review) -> None:
        """
        Delete a review and recompute its business's rating aggregate.

        The reward coupon already issued for the review is kept; only its
        back-link is cleared.

        Raises:
            CommitFailureError: nothing was deleted.
        """
        business_id = review.business_id
        review_id = review.id

        with self.locks.lock_for(business_id):
            try:
                business = db.query(Business).filter(
                    Business.id == business_id
                ).with_for_update().one()

                db.query(Coupon).filter(Coupon.review_id == review_id).update({Coupon.review_id: None})
                db.delete(review)
                db.flush()

                self._recompute_rating(db, business)
                db.commit()
            except Exception as e:
                db.rollback()
                logger.error(f"Error deleting review {review_id} for business {business_id}: {e}")
                raise CommitFailureError("We could not delete your review. Please try again.") from e

        logger.info(f"Review {review_id} deleted from business {business_id}")

    def _write_unit(
        self,
        db: Session,
        submission: ReviewSubmission,
        business_id: int,
        security_metadata: Dict[str, Any],
        code: str,
        now: datetime
    ) -> Tuple[Review, Coupon]:
        business = db.query(Business).filter(
            Business.id == business_id
        ).with_for_update().one()

        # 1. Coupon first, from the active template or the defaults
        template = self.coupons.get_active_template(db, business_id)
        coupon = self.coupons.issue_review_coupon(
            db,
            business_id=business_id,
            user_id=submission.user_id,
            template=template,
            now=now,
            code=code
        )
        db.flush()

        # 2. Review, already carrying its reward
        review = Review(
            user_id=submission.user_id,
            business_id=business_id,
            rating=submission.rating,
            comment=submission.comment,
            latitude=submission.latitude,
            longitude=submission.longitude,
            images=[image.model_dump() for image in submission.images],
            device_id=submission.telemetry.device_id,
            verified=True,
            status="approved",
            security_metadata=security_metadata,
            coupon_awarded=True,
            coupon_id=coupon.id,
            created_at=now
        )
        db.add(review)
        db.flush()

        coupon.review_id = review.id

        # 3. Aggregate recomputed over every review, including this one
        self._recompute_rating(db, business)
        db.flush()

        return review, coupon

    def _code_taken(self, db: Session, code: str) -> bool:
        return db.query(Coupon.id).filter(Coupon.code == code).first() is not None

    def _recompute_rating(self, db: Session, business: Business) -> None:
        average, count = db.query(
            func.avg(Review.rating),
            func.count(Review.id)
        ).filter(Review.business_id == business.id).one()

        business.rating_average = float(average or 0.0)
        business.rating_count = int(count or 0)
        business.review_count = business.rating_count


# Singleton instance
review_commit_service = ReviewCommitService()
