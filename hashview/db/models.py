"""
SQLAlchemy ORM Models for the HashView review service
"""
from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime,
    ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hashview.db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    reviews = relationship("Review", back_populates="user")
    coupons = relationship("Coupon", back_populates="user")


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String(100), nullable=False)
    category = Column(String(50))
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    radius = Column(Float, default=50.0)  # geofence radius in meters
    status = Column(String(20), default="pending")  # pending, active, suspended, rejected
    # Rating aggregate (always recomputed from all reviews)
    rating_average = Column(Float, default=0.0)
    rating_count = Column(Integer, default=0)
    review_count = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    __table_args__ = (
        Index('idx_business_status', 'status'),
        Index('idx_business_owner', 'owner_id'),
    )

    # Relationships
    owner = relationship("User")
    reviews = relationship("Review", back_populates="business")
    coupon_templates = relationship("CouponTemplate", back_populates="business")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    images = Column(JSON, default=list)
    device_id = Column(String(255))
    verified = Column(Boolean, default=False)
    status = Column(String(20), default="approved")  # pending, approved, rejected, flagged
    # Immutable snapshot of telemetry + geofence result
    security_metadata = Column(JSON)
    coupon_awarded = Column(Boolean, default=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id", use_alter=True, name="fk_review_coupon"))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    __table_args__ = (
        Index('idx_review_business_created', 'business_id', 'created_at'),
        Index('idx_review_user_created', 'user_id', 'created_at'),
        Index('idx_review_device_created', 'device_id', 'created_at'),
    )

    # Relationships
    user = relationship("User", back_populates="reviews")
    business = relationship("Business", back_populates="reviews")
    coupon = relationship("Coupon", foreign_keys=[coupon_id], post_update=True)
    helpful_votes = relationship("ReviewHelpfulVote", back_populates="review", cascade="all, delete-orphan")


class ReviewHelpfulVote(Base):
    """A user marking a review as helpful; one vote per user per review"""
    __tablename__ = "review_helpful_votes"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("review_id", "user_id", name="uq_helpful_vote_review_user"),
    )

    # Relationships
    review = relationship("Review", back_populates="helpful_votes")


class CouponTemplate(Base):
    """Business-configured pattern for review reward coupons"""
    __tablename__ = "coupon_templates"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    kind = Column(String(20), default="business")
    is_active = Column(Boolean, default=True)
    reward_type = Column(String(20), nullable=False)  # percentage, fixed, free_item, buy1get1, cashback
    reward_value = Column(Float, nullable=False)
    item_name = Column(String(100))
    description = Column(String(200))
    min_purchase_amount = Column(Float, default=0.0)
    max_discount_amount = Column(Float)
    usage_count = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_coupon_template_business', 'business_id', 'kind', 'is_active'),
    )

    # Relationships
    business = relationship("Business", back_populates="coupon_templates")


class Coupon(Base):
    """Reward instance minted for an accepted review"""
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), unique=True, nullable=False)
    type = Column(String(20), default="review_reward")
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    review_id = Column(Integer, ForeignKey("reviews.id"))
    template_id = Column(Integer, ForeignKey("coupon_templates.id"))
    reward_type = Column(String(20), nullable=False)
    reward_value = Column(Float, nullable=False)
    item_name = Column(String(100))
    description = Column(String(200))
    terms = Column(Text)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    status = Column(String(20), default="active")  # active, redeemed, expired, cancelled
    min_purchase_amount = Column(Float, default=0.0)
    max_discount_amount = Column(Float)
    redeemed_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_coupon_user_status', 'user_id', 'status'),
        Index('idx_coupon_business', 'business_id'),
        Index('idx_coupon_valid_until', 'valid_until'),
    )

    # Relationships
    user = relationship("User", back_populates="coupons")
    business = relationship("Business")
    template = relationship("CouponTemplate")
    review = relationship("Review", foreign_keys=[review_id])
