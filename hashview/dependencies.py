"""
FastAPI dependencies for the HashView review service
"""
from typing import Generator, Optional
from fastapi import Header, HTTPException, status
from sqlalchemy.orm import Session
from hashview.db.database import SessionLocal
from hashview.config import settings
from hashview.services.audit_log import SuspiciousActivityRecorder, suspicious_activity_log
from hashview.services.review_service import ReviewService, review_service


def get_db() -> Generator[Session, None, None]:
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_activity_recorder() -> SuspiciousActivityRecorder:
    """Suspicious activity recorder shared by the pipeline and admin routes"""
    return suspicious_activity_log


def get_review_service() -> ReviewService:
    return review_service


async def verify_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    """Verify API key for internal endpoints"""
    if not x_api_key or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return x_api_key
