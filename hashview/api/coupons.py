"""
Coupons Router - Reward coupon wallet, verification and discount calculation
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from hashview.db.models import Business
from hashview.dependencies import get_db
from hashview.services.coupon_service import coupon_service

router = APIRouter()

COUPON_STATUS_PATTERN = "^(active|redeemed|expired|cancelled)$"


class CouponVerifyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)


class DiscountRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    purchase_amount: float = Field(..., ge=0, allow_inf_nan=False)


@router.post("/verify")
async def verify_coupon(
    request: CouponVerifyRequest,
    db: Session = Depends(get_db)
):
    """Check whether a coupon code is currently redeemable."""
    coupon = coupon_service.find_by_code(db, request.code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    now = datetime.utcnow()
    is_valid = coupon_service.is_valid(coupon, now)
    return {
        "success": is_valid,
        "message": "Coupon is valid" if is_valid else "Coupon is expired or invalid",
        "coupon": coupon_service.serialize(coupon, now)
    }


@router.post("/calculate-discount")
async def calculate_discount(
    request: DiscountRequest,
    db: Session = Depends(get_db)
):
    """
    Discount for a purchase amount.

    - percentage / cashback: amount × value / 100, capped by max discount
    - fixed: min(value, amount)
    - free_item / buy1get1: 0 (honoured in person by the business)
    """
    coupon = coupon_service.find_by_code(db, request.code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    if not coupon_service.is_valid(coupon):
        raise HTTPException(status_code=400, detail="Coupon is expired or invalid")

    if request.purchase_amount < (coupon.min_purchase_amount or 0):
        raise HTTPException(
            status_code=400,
            detail=f"Minimum purchase amount is {coupon.min_purchase_amount:g}"
        )

    discount = coupon_service.calculate_discount(coupon, request.purchase_amount)
    return {
        "success": True,
        "discount": discount,
        "final_amount": round(request.purchase_amount - discount, 2),
        "coupon": coupon_service.serialize(coupon)
    }


@router.get("")
async def list_my_coupons(
    user_id: int = Query(..., description="Coupon holder"),
    status: Optional[str] = Query(None, pattern=COUPON_STATUS_PATTERN),
    db: Session = Depends(get_db)
):
    """The user's coupon wallet, newest first."""
    now = datetime.utcnow()
    coupons = coupon_service.list_user_coupons(db, user_id, status=status)
    return {
        "success": True,
        "count": len(coupons),
        "coupons": [coupon_service.serialize(c, now) for c in coupons]
    }


@router.get("/business/{business_id}")
async def list_business_coupons(
    business_id: int,
    user_id: int = Query(..., description="Requesting business owner"),
    db: Session = Depends(get_db)
):
    """Every coupon issued by a business, newest first. Owner only."""
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    if business.owner_id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized")

    now = datetime.utcnow()
    coupons = coupon_service.list_business_coupons(db, business_id)
    return {
        "success": True,
        "count": len(coupons),
        "coupons": [coupon_service.serialize(c, now) for c in coupons]
    }


@router.get("/{coupon_id}")
async def get_coupon(
    coupon_id: int,
    user_id: int = Query(..., description="Coupon holder"),
    db: Session = Depends(get_db)
):
    coupon = coupon_service.get_coupon(db, coupon_id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    if coupon.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to view this coupon")

    return {"success": True, "coupon": coupon_service.serialize(coupon)}
