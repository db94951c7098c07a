"""
Review Submission Pipeline - location-verified review intake

Stages, cheapest first:
1. Validate the payload
2. Reviewer must exist; rate limit (per user, per local day) and duplicate check
3. Load the business; it must exist and be active
4. Geofence (hard gate)
5. Security signals (hard gates + soft flags)
6. Commit review + rating aggregate + reward coupon as one unit
7. Notify reviewer and business owner (fire-and-forget)

submit() never raises: every outcome comes back as a SubmissionResult.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import and_
from sqlalchemy.orm import Session

from hashview.db.models import Business, Coupon, Review, ReviewHelpfulVote, User
from hashview.exceptions import (
    BusinessUnavailableError,
    CommitFailureError,
    DuplicateSubmissionError,
    GeofenceViolationError,
    RateLimitExceededError,
    ReviewPipelineError,
    SecurityHardBlockError,
    SubmissionValidationError,
)
from hashview.schemas.submission import ReviewSubmission
from hashview.services.audit_log import SuspiciousActivityRecorder, suspicious_activity_log
from hashview.services.coupon_service import CouponService, coupon_service as default_coupon_service
from hashview.services.geo_service import GeoService, GeofenceDecision, geo_service as default_geo_service
from hashview.services.notification_service import (
    NotificationService,
    notification_service as default_notification_service,
)
from hashview.services.rate_guard_service import RateGuardService, rate_guard_service as default_rate_guard
from hashview.services.review_commit_service import (
    ReviewCommitService,
    review_commit_service as default_commit_service,
)
from hashview.services.security_service import SecurityService, SecurityVerdict

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    success: bool
    review: Optional[Review] = None
    coupon: Optional[Coupon] = None
    verdict: Optional[SecurityVerdict] = None
    error: Optional[ReviewPipelineError] = None


def _format_validation_errors(exc: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]


class ReviewService:
    """Entry point for review submissions and review reads"""

    def __init__(
        self,
        recorder: Optional[SuspiciousActivityRecorder] = None,
        geo: Optional[GeoService] = None,
        rate_guard: Optional[RateGuardService] = None,
        security: Optional[SecurityService] = None,
        committer: Optional[ReviewCommitService] = None,
        coupons: Optional[CouponService] = None,
        notifier: Optional[NotificationService] = None
    ):
        self.recorder = recorder if recorder is not None else suspicious_activity_log
        self.geo = geo if geo is not None else default_geo_service
        self.rate_guard = rate_guard if rate_guard is not None else default_rate_guard
        self.security = security if security is not None else SecurityService(self.recorder)
        self.committer = committer if committer is not None else default_commit_service
        self.coupons = coupons if coupons is not None else default_coupon_service
        self.notifier = notifier if notifier is not None else default_notification_service

    def submit(
        self,
        db: Session,
        payload: Union[ReviewSubmission, Dict[str, Any]],
        now: Optional[datetime] = None
    ) -> SubmissionResult:
        """Run the full pipeline and return a typed result."""
        now = now or datetime.utcnow()
        verdict = None
        try:
            submission = self._validate(payload)
            reviewer = self._load_reviewer(db, submission.user_id)
            self._check_rate_and_duplicate(db, submission, now)
            business = self._load_business(db, submission.business_id)
            geofence = self._check_geofence(submission, business)

            device_reviews = self.rate_guard.count_device_reviews_today(
                db, submission.telemetry.device_id, now
            )
            verdict = self.security.evaluate(
                submission.telemetry,
                same_device_reviews_today=device_reviews,
                user_id=submission.user_id
            )
            if verdict.blocked:
                raise SecurityHardBlockError(verdict.reason, verdict)

            metadata = self._security_snapshot(submission, geofence, verdict)
            review, coupon = self.committer.commit(db, submission, business, metadata, now)

        except ReviewPipelineError as e:
            logger.warning(f"Review submission rejected ({e.kind.value}): {e}")
            return SubmissionResult(success=False, verdict=verdict, error=e)
        except Exception as e:
            db.rollback()
            logger.error(f"Unexpected error submitting review: {e}")
            return SubmissionResult(success=False, verdict=verdict, error=CommitFailureError())

        self._notify(submission, business, reviewer, review, coupon)
        return SubmissionResult(success=True, review=review, coupon=coupon, verdict=verdict)

    def _validate(self, payload: Union[ReviewSubmission, Dict[str, Any]]) -> ReviewSubmission:
        if isinstance(payload, ReviewSubmission):
            return payload
        try:
            return ReviewSubmission.model_validate(payload)
        except ValidationError as e:
            raise SubmissionValidationError(_format_validation_errors(e)) from e

    def _load_reviewer(self, db: Session, user_id: int) -> User:
        reviewer = self.get_user(db, user_id)
        if not reviewer:
            raise SubmissionValidationError(["user_id: User not found"])
        return reviewer

    def _check_rate_and_duplicate(self, db: Session, submission: ReviewSubmission, now: datetime) -> None:
        if not self.rate_guard.check_rate_limit(db, submission.user_id, now):
            self.recorder.record(submission.user_id, "rate_limit_exceeded", {
                "business_id": submission.business_id,
                "limit": self.rate_guard.daily_limit,
            })
            raise RateLimitExceededError(self.rate_guard.daily_limit)

        # Duplicates are ordinary behaviour, not a security signal
        if self.rate_guard.check_duplicate(db, submission.user_id, submission.business_id, now):
            raise DuplicateSubmissionError(submission.business_id)

    def _load_business(self, db: Session, business_id: int) -> Business:
        business = db.query(Business).filter(Business.id == business_id).first()
        if not business:
            raise BusinessUnavailableError(business_id, found=False)
        if business.status != "active":
            raise BusinessUnavailableError(business_id, found=True)
        return business

    def _check_geofence(self, submission: ReviewSubmission, business: Business) -> GeofenceDecision:
        decision = self.geo.evaluate(
            submission.latitude,
            submission.longitude,
            business.latitude,
            business.longitude,
            business.radius
        )
        if not decision.within_fence:
            self.recorder.record(submission.user_id, "geofence_violation", {
                "business_id": business.id,
                "distance_meters": round(decision.distance_meters, 2),
                "radius_meters": decision.radius_meters,
                "latitude": submission.latitude,
                "longitude": submission.longitude,
            })
            raise GeofenceViolationError(decision.distance_meters, decision.radius_meters)
        return decision

    def _security_snapshot(
        self,
        submission: ReviewSubmission,
        geofence: GeofenceDecision,
        verdict: SecurityVerdict
    ) -> Dict[str, Any]:
        """Full telemetry plus geofence numbers, frozen onto the review for audit."""
        snapshot = submission.telemetry.model_dump(mode="json")
        snapshot.update({
            "distance_meters": round(geofence.distance_meters, 2),
            "business_radius_meters": geofence.radius_meters,
            "verdict": verdict.to_dict(),
        })
        return snapshot

    def _notify(
        self,
        submission: ReviewSubmission,
        business: Business,
        reviewer: User,
        review: Review,
        coupon: Coupon
    ) -> None:
        """Reviewer and owner notifications are dispatched independently."""
        try:
            self.notifier.notify(
                submission.user_id,
                "Coupon Earned! 🎉",
                self.coupons.reward_message(coupon),
                {"type": "coupon", "coupon_id": coupon.id}
            )
        except Exception as e:
            logger.error(f"Error sending coupon notification to user {submission.user_id}: {e}")

        try:
            self.notifier.notify(
                business.owner_id,
                "New Review",
                f"{reviewer.name} left a {submission.rating}-star review for {business.name}",
                {"type": "review", "review_id": review.id}
            )
        except Exception as e:
            logger.error(f"Error sending review notification to owner {business.owner_id}: {e}")

    def list_business_reviews(
        self,
        db: Session,
        business_id: int,
        page: int = 1,
        limit: int = 10
    ) -> Dict[str, Any]:
        """Approved reviews for a business, newest first."""
        query = db.query(Review).filter(
            Review.business_id == business_id,
            Review.status == "approved"
        )
        total = query.count()
        reviews = query.order_by(
            Review.created_at.desc(), Review.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "success": True,
            "count": len(reviews),
            "total": total,
            "page": page,
            "pages": (total + limit - 1) // limit,
            "reviews": [self.serialize(r) for r in reviews],
        }

    def get_review(self, db: Session, review_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.id == review_id).first()

    def get_user(self, db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    def delete_review(self, db: Session, review: Review) -> None:
        """Remove a review; the business rating is recomputed without it."""
        self.committer.remove(db, review)

    def toggle_helpful(self, db: Session, review: Review, user_id: int) -> int:
        """Add the user's helpful mark, or take it back if already given. Returns the new total."""
        vote = db.query(ReviewHelpfulVote).filter(
            and_(
                ReviewHelpfulVote.review_id == review.id,
                ReviewHelpfulVote.user_id == user_id
            )
        ).first()

        if vote:
            db.delete(vote)
        else:
            db.add(ReviewHelpfulVote(review_id=review.id, user_id=user_id))
        db.commit()

        return db.query(ReviewHelpfulVote).filter(
            ReviewHelpfulVote.review_id == review.id
        ).count()

    @staticmethod
    def serialize(review: Review) -> Dict[str, Any]:
        return {
            "id": review.id,
            "user_id": review.user_id,
            "business_id": review.business_id,
            "rating": review.rating,
            "comment": review.comment,
            "latitude": review.latitude,
            "longitude": review.longitude,
            "images": review.images or [],
            "verified": review.verified,
            "status": review.status,
            "coupon_awarded": review.coupon_awarded,
            "coupon_id": review.coupon_id,
            "helpful": len(review.helpful_votes),
            "created_at": review.created_at.isoformat() if review.created_at else None,
        }


# Singleton instance
review_service = ReviewService()
