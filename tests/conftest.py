"""
Pytest Configuration and Shared Fixtures.

This module provides common fixtures for all tests:

- engine / db_session: SQLite database with all tables created
- recorder: fresh suspicious activity ring buffer
- notifier: mocked notification dispatcher
- review_service: pipeline wired with the fixtures above
- sample_business / sample_template: seeded business data
"""

import os

# Must run before hashview.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["PUSH_API_URL"] = ""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hashview.db import models  # noqa: F401
from hashview.db.database import Base
from hashview.db.models import Business, CouponTemplate, User
from hashview.services.audit_log import SuspiciousActivityRecorder
from hashview.services.notification_service import NotificationService
from hashview.services.review_commit_service import ReviewCommitService
from hashview.services.review_service import ReviewService

BUSINESS_LAT = 26.1440
BUSINESS_LON = 91.7360

# Fixed clock: midday UTC so "today" never straddles midnight
NOW = datetime(2026, 3, 14, 12, 0, 0)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several threads can open their own sessions."""
    db_path = tmp_path / "hashview_test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def recorder():
    return SuspiciousActivityRecorder(capacity=100)


@pytest.fixture
def notifier():
    return MagicMock(spec=NotificationService)


@pytest.fixture
def review_service(recorder, notifier):
    return ReviewService(
        recorder=recorder,
        committer=ReviewCommitService(),
        notifier=notifier,
    )


@pytest.fixture
def owner(db_session):
    user = User(name="Business Owner", email="owner@example.com")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def reviewer(db_session):
    user = User(name="Asha", email="asha@example.com")
    db_session.add(user)
    db_session.commit()
    return user


def make_business(db_session, owner, name="Brew House", status="active", radius=50.0):
    business = Business(
        owner_id=owner.id,
        name=name,
        category="cafe",
        latitude=BUSINESS_LAT,
        longitude=BUSINESS_LON,
        radius=radius,
        status=status,
    )
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture
def sample_business(db_session, owner):
    return make_business(db_session, owner)


@pytest.fixture
def sample_template(db_session, sample_business):
    template = CouponTemplate(
        business_id=sample_business.id,
        kind="business",
        is_active=True,
        reward_type="fixed",
        reward_value=50.0,
        description="Flat 50 off your next order",
        min_purchase_amount=200.0,
        max_discount_amount=None,
    )
    db_session.add(template)
    db_session.commit()
    return template


def valid_telemetry(**overrides) -> dict:
    telemetry = {
        "location_accuracy": 10,
        "verification_time": 30,
        "motion_detected": True,
        "is_mock_location": False,
        "location_history_count": 8,
        "suspicious_activities": [],
        "device_fingerprint": {
            "manufacturer": "Google",
            "model": "Pixel 8",
            "os_name": "Android",
            "os_version": "14",
            "device_id": "device-abc",
        },
    }
    telemetry.update(overrides)
    return telemetry


def make_payload(user_id, business_id, **overrides) -> dict:
    payload = {
        "user_id": user_id,
        "business_id": business_id,
        "rating": 5,
        "comment": "Lovely place, the filter coffee was excellent.",
        "latitude": BUSINESS_LAT,
        "longitude": BUSINESS_LON,
        "telemetry": valid_telemetry(),
    }
    payload.update(overrides)
    return payload
