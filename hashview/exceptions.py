"""
Exception hierarchy for the review submission pipeline.

Each error carries a semantic kind and a message that is safe to show
the end user. The pipeline entry point converts these into typed
results; nothing below is meant to escape to the HTTP layer uncaught.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    DUPLICATE_SUBMISSION = "duplicate_submission"
    BUSINESS_UNAVAILABLE = "business_unavailable"
    GEOFENCE_VIOLATION = "geofence_violation"
    SECURITY_HARD_BLOCK = "security_hard_block"
    VALIDATION_ERROR = "validation_error"
    COMMIT_FAILURE = "commit_failure"


class ReviewPipelineError(Exception):
    """Base exception for all review pipeline errors."""

    kind: ErrorKind = ErrorKind.COMMIT_FAILURE
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class RateLimitExceededError(ReviewPipelineError):
    """Daily submission ceiling reached."""

    kind = ErrorKind.RATE_LIMIT_EXCEEDED
    status_code = 429
    retryable = True

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(
            f"You have reached the limit of {limit} reviews per day. Please try again tomorrow.",
            {"limit": limit},
        )


class DuplicateSubmissionError(ReviewPipelineError):
    kind = ErrorKind.DUPLICATE_SUBMISSION
    status_code = 409
    retryable = True

    def __init__(self, business_id: int):
        super().__init__(
            "You have already reviewed this business today",
            {"business_id": business_id},
        )


class BusinessUnavailableError(ReviewPipelineError):
    kind = ErrorKind.BUSINESS_UNAVAILABLE

    def __init__(self, business_id: int, found: bool):
        self.found = found
        self.status_code = 400 if found else 404
        message = "This business is not active" if found else "Business not found"
        super().__init__(message, {"business_id": business_id})


class GeofenceViolationError(ReviewPipelineError):
    """Reviewer is outside the business's configured radius."""

    kind = ErrorKind.GEOFENCE_VIOLATION
    status_code = 400

    def __init__(self, distance_meters: float, radius_meters: float):
        self.distance_meters = distance_meters
        self.radius_meters = radius_meters
        super().__init__(
            f"You must be within {radius_meters:.0f}m of the business to post a review. "
            f"You are currently {distance_meters:.0f}m away.",
            {
                "distance_meters": round(distance_meters, 2),
                "radius_meters": radius_meters,
            },
        )


class SecurityHardBlockError(ReviewPipelineError):
    """A hard-gate security signal tripped; thresholds are not disclosed."""

    kind = ErrorKind.SECURITY_HARD_BLOCK
    status_code = 403

    def __init__(self, message: str, verdict: Any = None):
        self.verdict = verdict
        super().__init__(message)


class SubmissionValidationError(ReviewPipelineError):
    kind = ErrorKind.VALIDATION_ERROR
    status_code = 422

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("Validation failed", {"errors": errors})


class CommitFailureError(ReviewPipelineError):
    """Unexpected failure while writing the review unit; nothing was applied."""

    kind = ErrorKind.COMMIT_FAILURE
    status_code = 500
    retryable = True

    def __init__(self, message: str = "We could not save your review. Please try again."):
        super().__init__(message)
