"""Unit tests for the daily rate limit and duplicate guard."""

from datetime import datetime, timedelta

import pytest

from hashview.db.models import Review
from hashview.services.rate_guard_service import RateGuardService, start_of_local_day
from tests.conftest import BUSINESS_LAT, BUSINESS_LON, NOW, make_business


def add_review(db_session, user_id, business_id, created_at, device_id=None):
    review = Review(
        user_id=user_id,
        business_id=business_id,
        rating=4,
        comment="Pretty good overall experience.",
        latitude=BUSINESS_LAT,
        longitude=BUSINESS_LON,
        device_id=device_id,
        verified=True,
        created_at=created_at,
    )
    db_session.add(review)
    db_session.commit()
    return review


@pytest.fixture
def guard():
    return RateGuardService(daily_limit=5, tz_name="UTC")


class TestStartOfLocalDay:

    def test_utc_midnight(self):
        assert start_of_local_day(NOW, "UTC") == datetime(2026, 3, 14, 0, 0, 0)

    def test_local_zone_midnight_in_utc(self):
        # 12:00 UTC is 17:30 in Kolkata; local midnight is 18:30 UTC the day before
        assert start_of_local_day(NOW, "Asia/Kolkata") == datetime(2026, 3, 13, 18, 30, 0)


class TestRateLimit:

    def test_allows_under_limit(self, guard, db_session, sample_business, reviewer):
        for i in range(4):
            add_review(db_session, reviewer.id, sample_business.id, NOW - timedelta(hours=i + 1))

        assert guard.check_rate_limit(db_session, reviewer.id, NOW) is True

    def test_blocks_at_limit(self, guard, db_session, owner, reviewer):
        for i in range(5):
            business = make_business(db_session, owner, name=f"Shop {i}")
            add_review(db_session, reviewer.id, business.id, NOW - timedelta(minutes=i + 1))

        assert guard.check_rate_limit(db_session, reviewer.id, NOW) is False

    def test_yesterday_does_not_count(self, guard, db_session, sample_business, reviewer):
        for i in range(5):
            add_review(db_session, reviewer.id, sample_business.id, NOW - timedelta(days=1, minutes=i))

        assert guard.count_user_reviews_today(db_session, reviewer.id, NOW) == 0
        assert guard.check_rate_limit(db_session, reviewer.id, NOW) is True


class TestDuplicate:

    def test_same_business_same_day(self, guard, db_session, sample_business, reviewer):
        add_review(db_session, reviewer.id, sample_business.id, NOW - timedelta(hours=3))

        assert guard.check_duplicate(db_session, reviewer.id, sample_business.id, NOW) is True

    def test_other_business_is_not_duplicate(self, guard, db_session, owner, sample_business, reviewer):
        other = make_business(db_session, owner, name="Other Shop")
        add_review(db_session, reviewer.id, other.id, NOW - timedelta(hours=3))

        assert guard.check_duplicate(db_session, reviewer.id, sample_business.id, NOW) is False

    def test_previous_day_is_not_duplicate(self, guard, db_session, sample_business, reviewer):
        add_review(db_session, reviewer.id, sample_business.id, NOW - timedelta(hours=13))

        assert guard.check_duplicate(db_session, reviewer.id, sample_business.id, NOW) is False


class TestDeviceCount:

    def test_counts_device_reviews_today(self, guard, db_session, owner, reviewer):
        for i in range(3):
            business = make_business(db_session, owner, name=f"Shop {i}")
            add_review(db_session, reviewer.id, business.id, NOW - timedelta(minutes=i + 1), device_id="dev-1")

        assert guard.count_device_reviews_today(db_session, "dev-1", NOW) == 3
        assert guard.count_device_reviews_today(db_session, "dev-2", NOW) == 0
        assert guard.count_device_reviews_today(db_session, None, NOW) == 0
