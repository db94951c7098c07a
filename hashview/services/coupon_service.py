"""
Coupon Service - Reward coupon codes, expiry, validity and discounts
"""
import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from hashview.config import settings
from hashview.db.models import Coupon, CouponTemplate

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits

DEFAULT_REWARD = {
    "reward_type": "percentage",
    "reward_value": 10.0,
    "item_name": None,
    "description": "Thank you for your review! Enjoy your reward. Valid for 2 hours.",
    "min_purchase_amount": 0.0,
    "max_discount_amount": None,
}

COUPON_TERMS = "Valid for 2 hours from time of issue. Can be used once."

NON_MONETARY_TYPES = {"free_item", "buy1get1"}


class CouponService:
    """Service for minting and evaluating review reward coupons"""

    MAX_CODE_ATTEMPTS = 10

    def generate_code(self, length: Optional[int] = None) -> str:
        """Random uppercase alphanumeric code; uniqueness is checked separately."""
        length = length or settings.COUPON_CODE_LENGTH
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))

    def generate_unique_code(self, db: Session, length: Optional[int] = None) -> str:
        """
        Generate a code not held by any existing coupon.

        The UNIQUE constraint on coupons.code remains the final guard for
        codes minted concurrently in other sessions.
        """
        for _ in range(self.MAX_CODE_ATTEMPTS):
            code = self.generate_code(length)
            taken = db.query(Coupon.id).filter(Coupon.code == code).first()
            if not taken:
                return code
            logger.info(f"Coupon code collision on {code}, regenerating")
        raise RuntimeError("Could not generate a unique coupon code")

    def compute_expiry(self, now: Optional[datetime] = None, hours: Optional[int] = None) -> datetime:
        now = now or datetime.utcnow()
        hours = settings.COUPON_VALIDITY_HOURS if hours is None else hours
        return now + timedelta(hours=hours)

    def is_valid(self, coupon: Coupon, now: Optional[datetime] = None) -> bool:
        """Redeemable only while active and not past valid_until."""
        now = now or datetime.utcnow()
        if coupon.status != "active":
            return False
        return now <= coupon.valid_until

    def calculate_discount(self, coupon: Coupon, purchase_amount: float) -> float:
        reward_type = coupon.reward_type
        value = coupon.reward_value or 0.0

        if reward_type == "percentage":
            discount = purchase_amount * value / 100
            if coupon.max_discount_amount and discount > coupon.max_discount_amount:
                discount = coupon.max_discount_amount
        elif reward_type == "fixed":
            discount = min(value, purchase_amount)
        elif reward_type == "cashback":
            discount = purchase_amount * value / 100
            if coupon.max_discount_amount and discount > coupon.max_discount_amount:
                discount = coupon.max_discount_amount
        else:
            # free_item / buy1get1 are honoured by the business in person
            discount = 0.0

        return round(discount, 2)

    def get_active_template(self, db: Session, business_id: int) -> Optional[CouponTemplate]:
        return db.query(CouponTemplate).filter(
            and_(
                CouponTemplate.business_id == business_id,
                CouponTemplate.kind == "business",
                CouponTemplate.is_active == True
            )
        ).order_by(CouponTemplate.id.desc()).first()

    def reward_from_template(self, template: Optional[CouponTemplate]) -> Dict[str, Any]:
        """Template values where set, defaults otherwise."""
        if template is None:
            return dict(DEFAULT_REWARD)

        return {
            "reward_type": template.reward_type or DEFAULT_REWARD["reward_type"],
            "reward_value": template.reward_value if template.reward_value is not None else DEFAULT_REWARD["reward_value"],
            "item_name": template.item_name,
            "description": template.description or DEFAULT_REWARD["description"],
            "min_purchase_amount": template.min_purchase_amount or 0.0,
            "max_discount_amount": template.max_discount_amount,
        }

    def issue_review_coupon(
        self,
        db: Session,
        business_id: int,
        user_id: int,
        template: Optional[CouponTemplate],
        now: datetime,
        code: Optional[str] = None
    ) -> Coupon:
        """
        Add a review reward coupon to the session (not committed).

        The caller links it to the review and owns the transaction.
        """
        reward = self.reward_from_template(template)
        coupon = Coupon(
            code=code or self.generate_unique_code(db),
            type="review_reward",
            business_id=business_id,
            user_id=user_id,
            template_id=template.id if template else None,
            valid_from=now,
            valid_until=self.compute_expiry(now),
            status="active",
            terms=COUPON_TERMS,
            **reward
        )
        db.add(coupon)

        if template is not None:
            template.usage_count = (template.usage_count or 0) + 1

        return coupon

    def reward_message(self, coupon: Coupon) -> str:
        """Notification text for the reviewer, by reward type."""
        hours = settings.COUPON_VALIDITY_HOURS
        value = coupon.reward_value
        value_text = f"{value:g}"
        if coupon.reward_type == "percentage":
            return f"You've earned a {value_text}% discount coupon! Valid for {hours} hours."
        if coupon.reward_type == "fixed":
            return f"You've earned a ₹{value_text} discount coupon! Valid for {hours} hours."
        if coupon.reward_type == "cashback":
            return f"You've earned {value_text}% cashback! Valid for {hours} hours."
        if coupon.reward_type == "buy1get1":
            return f"You've earned a Buy 1 Get 1 coupon! Valid for {hours} hours."
        item = coupon.item_name or "item"
        return f"You've earned a free {item} coupon! Valid for {hours} hours."

    def find_by_code(self, db: Session, code: str) -> Optional[Coupon]:
        return db.query(Coupon).filter(Coupon.code == code.strip().upper()).first()

    def get_coupon(self, db: Session, coupon_id: int) -> Optional[Coupon]:
        return db.query(Coupon).filter(Coupon.id == coupon_id).first()

    def list_user_coupons(
        self,
        db: Session,
        user_id: int,
        status: Optional[str] = None
    ) -> List[Coupon]:
        """A user's coupon wallet, newest first."""
        query = db.query(Coupon).filter(Coupon.user_id == user_id)
        if status:
            query = query.filter(Coupon.status == status)
        return query.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()

    def list_business_coupons(self, db: Session, business_id: int) -> List[Coupon]:
        return db.query(Coupon).filter(
            Coupon.business_id == business_id
        ).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()

    def serialize(self, coupon: Coupon, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "id": coupon.id,
            "code": coupon.code,
            "type": coupon.type,
            "business_id": coupon.business_id,
            "user_id": coupon.user_id,
            "review_id": coupon.review_id,
            "template_id": coupon.template_id,
            "reward_type": coupon.reward_type,
            "reward_value": coupon.reward_value,
            "item_name": coupon.item_name,
            "description": coupon.description,
            "terms": coupon.terms,
            "valid_from": coupon.valid_from.isoformat() if coupon.valid_from else None,
            "valid_until": coupon.valid_until.isoformat() if coupon.valid_until else None,
            "status": coupon.status,
            "min_purchase_amount": coupon.min_purchase_amount,
            "max_discount_amount": coupon.max_discount_amount,
            "is_valid": self.is_valid(coupon, now),
        }


# Singleton instance
coupon_service = CouponService()
