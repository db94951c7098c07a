"""
Services package - Business logic layer
"""
from hashview.services.geo_service import geo_service
from hashview.services.audit_log import suspicious_activity_log
from hashview.services.rate_guard_service import rate_guard_service
from hashview.services.coupon_service import coupon_service
from hashview.services.notification_service import notification_service
from hashview.services.review_commit_service import review_commit_service
from hashview.services.review_service import review_service

__all__ = [
    "geo_service",
    "suspicious_activity_log",
    "rate_guard_service",
    "coupon_service",
    "notification_service",
    "review_commit_service",
    "review_service"
]
