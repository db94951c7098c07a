"""
Review submission payloads and security telemetry
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class SuspiciousActivityEvent(BaseModel):
    """A client-detected anomaly reported alongside the review"""
    type: str = Field(..., min_length=1, max_length=100, description="Activity type tag")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = Field(None, description="Client-side timestamp")


class DeviceFingerprintInfo(BaseModel):
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    device_id: Optional[str] = Field(None, description="Unique device identifier")


class SecurityTelemetry(BaseModel):
    """
    Client-reported trust signals.

    Every field is optional: an absent value means the signal is
    unavailable and it is never treated as a failure on its own.
    """
    location_accuracy: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="GPS horizontal accuracy in meters")
    verification_time: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Seconds spent on location verification")
    motion_detected: Optional[bool] = None
    is_mock_location: Optional[bool] = None
    location_history_count: Optional[int] = Field(None, ge=0, description="Distinct location samples collected")
    suspicious_activities: List[SuspiciousActivityEvent] = Field(default_factory=list)
    device_fingerprint: Optional[DeviceFingerprintInfo] = None
    device_platform: Optional[str] = None

    @property
    def device_id(self) -> Optional[str]:
        if self.device_fingerprint is None:
            return None
        return self.device_fingerprint.device_id


class ReviewImage(BaseModel):
    url: str
    public_id: Optional[str] = None


class ReviewSubmission(BaseModel):
    """Inbound review request; lives only for the duration of the request"""
    user_id: int = Field(..., description="ID of the reviewer")
    business_id: int = Field(..., description="ID of the business being reviewed")
    rating: int = Field(..., ge=1, le=5, description="Star rating 1-5")
    comment: str = Field(..., min_length=10, max_length=500)
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    images: List[ReviewImage] = Field(default_factory=list)
    telemetry: SecurityTelemetry = Field(default_factory=SecurityTelemetry)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 7,
                "business_id": 12,
                "rating": 5,
                "comment": "Great coffee and friendly staff!",
                "latitude": 26.1440,
                "longitude": 91.7360,
                "telemetry": {
                    "location_accuracy": 10,
                    "verification_time": 30,
                    "motion_detected": True,
                    "is_mock_location": False,
                    "location_history_count": 8,
                    "suspicious_activities": []
                }
            }
        }
