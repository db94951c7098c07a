"""
API routers package
"""
from hashview.api import (
    system,
    reviews,
    coupons,
    admin
)

__all__ = [
    "system",
    "reviews",
    "coupons",
    "admin"
]
