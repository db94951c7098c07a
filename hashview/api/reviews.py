"""
Reviews Router - Location-verified review submission, reads, deletion and helpful marks
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from hashview.dependencies import get_db, get_review_service
from hashview.exceptions import ReviewPipelineError
from hashview.schemas.submission import ReviewSubmission
from hashview.services.coupon_service import coupon_service
from hashview.services.review_service import ReviewService

logger = logging.getLogger(__name__)
router = APIRouter()


class HelpfulRequest(BaseModel):
    user_id: int


@router.post("", status_code=201)
def create_review(
    payload: Dict[str, Any] = Body(
        ...,
        examples=[ReviewSubmission.model_config["json_schema_extra"]["example"]]
    ),
    db: Session = Depends(get_db),
    service: ReviewService = Depends(get_review_service)
):
    """
    Submit a review from the reviewer's current location.

    Checks, in order:
    - Payload validation (rating 1-5, comment 10-500 chars, coordinates)
    - Daily limit (5 per user) and one review per business per day
    - Business must be active
    - Reviewer must be inside the business geofence
    - Device/GPS trust signals

    On success the review is saved verified, the business rating is
    recomputed, and a reward coupon valid for 2 hours is issued.
    """
    # Plain def: the commit blocks on a per-business lock
    result = service.submit(db, payload)

    if not result.success:
        error = result.error
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    return {
        "success": True,
        "message": "Review posted successfully",
        "review": service.serialize(result.review),
        "coupon": coupon_service.serialize(result.coupon)
    }


@router.get("/business/{business_id}")
async def get_business_reviews(
    business_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    service: ReviewService = Depends(get_review_service)
):
    """Approved reviews for a business, newest first."""
    return service.list_business_reviews(db, business_id, page=page, limit=limit)


@router.get("/{review_id}")
async def get_review(
    review_id: int,
    db: Session = Depends(get_db),
    service: ReviewService = Depends(get_review_service)
):
    review = service.get_review(db, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")

    return {"success": True, "review": service.serialize(review)}


@router.delete("/{review_id}")
def delete_review(
    review_id: int,
    user_id: int = Query(..., description="Review author"),
    db: Session = Depends(get_db),
    service: ReviewService = Depends(get_review_service)
):
    """Delete your own review. The business rating is recomputed without it."""
    review = service.get_review(db, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    if review.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to delete this review")

    try:
        service.delete_review(db, review)
    except ReviewPipelineError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    return {"success": True, "message": "Review deleted successfully"}


@router.post("/{review_id}/helpful")
async def mark_helpful(
    review_id: int,
    request: HelpfulRequest,
    db: Session = Depends(get_db),
    service: ReviewService = Depends(get_review_service)
):
    """Toggle the user's helpful mark on a review."""
    review = service.get_review(db, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    if not service.get_user(db, request.user_id):
        raise HTTPException(status_code=404, detail="User not found")

    return {"success": True, "helpful": service.toggle_helpful(db, review, request.user_id)}
