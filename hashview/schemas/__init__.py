"""
Request/response schemas
"""
from hashview.schemas.submission import (
    DeviceFingerprintInfo,
    ReviewImage,
    ReviewSubmission,
    SecurityTelemetry,
    SuspiciousActivityEvent,
)

__all__ = [
    "DeviceFingerprintInfo",
    "ReviewImage",
    "ReviewSubmission",
    "SecurityTelemetry",
    "SuspiciousActivityEvent",
]
