"""HTTP surface: reviews, coupons, admin audit trail and health."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from hashview.config import settings
from hashview.db.models import Coupon
from hashview.dependencies import get_activity_recorder, get_db, get_review_service
from hashview.main import app
from tests.conftest import BUSINESS_LAT, make_payload, valid_telemetry


@pytest.fixture
def client(session_factory, review_service, recorder):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_review_service] = lambda: review_service
    app.dependency_overrides[get_activity_recorder] = lambda: recorder
    yield TestClient(app)
    app.dependency_overrides.clear()


def add_coupon(db_session, business, user, code="SAVE2026", **overrides):
    now = datetime.utcnow()
    values = {
        "code": code,
        "business_id": business.id,
        "user_id": user.id,
        "reward_type": "percentage",
        "reward_value": 10.0,
        "min_purchase_amount": 0.0,
        "valid_from": now,
        "valid_until": now + timedelta(hours=2),
    }
    values.update(overrides)
    coupon = Coupon(**values)
    db_session.add(coupon)
    db_session.commit()
    return coupon


class TestReviewEndpoints:

    def test_create_review(self, client, sample_business, reviewer):
        response = client.post("/reviews", json=make_payload(reviewer.id, sample_business.id))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["review"]["verified"] is True
        assert body["review"]["coupon_id"] == body["coupon"]["id"]
        assert body["coupon"]["is_valid"] is True
        assert len(body["coupon"]["code"]) == 8

    def test_create_review_outside_geofence(self, client, sample_business, reviewer):
        payload = make_payload(reviewer.id, sample_business.id, latitude=BUSINESS_LAT + 0.01)

        response = client.post("/reviews", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["kind"] == "geofence_violation"
        assert body["details"]["radius_meters"] == 50.0

    def test_create_review_blocked_device(self, client, sample_business, reviewer):
        payload = make_payload(
            reviewer.id,
            sample_business.id,
            telemetry=valid_telemetry(location_accuracy=120),
        )

        response = client.post("/reviews", json=payload)

        assert response.status_code == 403
        assert response.json()["kind"] == "security_hard_block"

    def test_create_review_invalid_payload(self, client, sample_business, reviewer):
        payload = make_payload(reviewer.id, sample_business.id, rating=9)

        response = client.post("/reviews", json=payload)

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "validation_error"
        assert any("rating" in error for error in body["details"]["errors"])

    def test_list_business_reviews(self, client, sample_business, reviewer):
        client.post("/reviews", json=make_payload(reviewer.id, sample_business.id))

        response = client.get(f"/reviews/business/{sample_business.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["pages"] == 1
        assert body["reviews"][0]["rating"] == 5

    def test_get_review(self, client, sample_business, reviewer):
        created = client.post("/reviews", json=make_payload(reviewer.id, sample_business.id)).json()

        response = client.get(f"/reviews/{created['review']['id']}")

        assert response.status_code == 200
        assert response.json()["review"]["comment"] == created["review"]["comment"]

    def test_get_missing_review(self, client):
        response = client.get("/reviews/424242")

        assert response.status_code == 404


class TestCouponEndpoints:

    def test_verify_valid_coupon(self, client, db_session, sample_business, reviewer):
        add_coupon(db_session, sample_business, reviewer)

        response = client.post("/coupons/verify", json={"code": " save2026 "})

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_verify_expired_coupon(self, client, db_session, sample_business, reviewer):
        past = datetime.utcnow() - timedelta(hours=3)
        add_coupon(db_session, sample_business, reviewer, valid_from=past, valid_until=past + timedelta(hours=2))

        response = client.post("/coupons/verify", json={"code": "SAVE2026"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["coupon"]["is_valid"] is False

    def test_verify_unknown_coupon(self, client):
        response = client.post("/coupons/verify", json={"code": "NOPE0000"})

        assert response.status_code == 404

    def test_calculate_percentage_discount(self, client, db_session, sample_business, reviewer):
        add_coupon(db_session, sample_business, reviewer, max_discount_amount=30.0)

        response = client.post(
            "/coupons/calculate-discount",
            json={"code": "SAVE2026", "purchase_amount": 500},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["discount"] == 30.0
        assert body["final_amount"] == 470.0

    def test_calculate_below_minimum_purchase(self, client, db_session, sample_business, reviewer):
        add_coupon(db_session, sample_business, reviewer, reward_type="fixed", reward_value=50.0,
                   min_purchase_amount=200.0)

        response = client.post(
            "/coupons/calculate-discount",
            json={"code": "SAVE2026", "purchase_amount": 150},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Minimum purchase amount is 200"


class TestAdminEndpoints:

    def test_requires_api_key(self, client):
        response = client.get("/admin/suspicious-activities")

        assert response.status_code == 401

    def test_lists_recorded_activity(self, client, recorder):
        recorder.record(7, "mock_location", {"severity": "high"})
        recorder.record(8, "geofence_violation", {"distance_meters": 812.4})

        response = client.get(
            "/admin/suspicious-activities",
            params={"user_id": 7},
            headers={"X-API-Key": settings.API_KEY},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["stored"] == 2
        assert body["activities"][0]["event_type"] == "mock_location"


class TestHealth:

    def test_health_reports_redis_down(self, client, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionError("redis unavailable")

        monkeypatch.setattr("hashview.api.system.redis.from_url", refuse)

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "healthy"
        assert body["redis"] == "unhealthy"
        assert body["notification_queue_depth"] == 0


class TestReviewManagementEndpoints:

    def test_delete_own_review(self, client, db_session, sample_business, reviewer):
        created = client.post("/reviews", json=make_payload(reviewer.id, sample_business.id)).json()

        response = client.delete(f"/reviews/{created['review']['id']}", params={"user_id": reviewer.id})

        assert response.status_code == 200
        assert response.json()["message"] == "Review deleted successfully"
        db_session.refresh(sample_business)
        assert sample_business.rating_count == 0
        assert client.get(f"/reviews/{created['review']['id']}").status_code == 404

    def test_delete_someone_elses_review(self, client, sample_business, reviewer, owner):
        created = client.post("/reviews", json=make_payload(reviewer.id, sample_business.id)).json()

        response = client.delete(f"/reviews/{created['review']['id']}", params={"user_id": owner.id})

        assert response.status_code == 403

    def test_delete_missing_review(self, client, reviewer):
        response = client.delete("/reviews/424242", params={"user_id": reviewer.id})

        assert response.status_code == 404

    def test_mark_helpful_toggles(self, client, sample_business, reviewer, owner):
        created = client.post("/reviews", json=make_payload(reviewer.id, sample_business.id)).json()
        url = f"/reviews/{created['review']['id']}/helpful"

        assert client.post(url, json={"user_id": owner.id}).json()["helpful"] == 1
        assert client.post(url, json={"user_id": owner.id}).json()["helpful"] == 0

    def test_mark_helpful_unknown_user(self, client, sample_business, reviewer):
        created = client.post("/reviews", json=make_payload(reviewer.id, sample_business.id)).json()

        response = client.post(f"/reviews/{created['review']['id']}/helpful", json={"user_id": 424242})

        assert response.status_code == 404
        assert response.json()["detail"] == "User not found"


class TestCouponWalletEndpoints:

    def test_wallet_lists_earned_coupon(self, client, sample_business, reviewer):
        created = client.post("/reviews", json=make_payload(reviewer.id, sample_business.id)).json()

        response = client.get("/coupons", params={"user_id": reviewer.id, "status": "active"})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["coupons"][0]["code"] == created["coupon"]["code"]

    def test_wallet_rejects_unknown_status(self, client, reviewer):
        response = client.get("/coupons", params={"user_id": reviewer.id, "status": "lost"})

        assert response.status_code == 422

    def test_get_coupon_for_holder_only(self, client, db_session, sample_business, reviewer, owner):
        coupon = add_coupon(db_session, sample_business, reviewer)

        assert client.get(f"/coupons/{coupon.id}", params={"user_id": reviewer.id}).status_code == 200
        assert client.get(f"/coupons/{coupon.id}", params={"user_id": owner.id}).status_code == 403
        assert client.get("/coupons/999999", params={"user_id": reviewer.id}).status_code == 404

    def test_business_coupons_for_owner_only(self, client, db_session, sample_business, reviewer, owner):
        add_coupon(db_session, sample_business, reviewer)

        response = client.get(f"/coupons/business/{sample_business.id}", params={"user_id": owner.id})

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert client.get(
            f"/coupons/business/{sample_business.id}", params={"user_id": reviewer.id}
        ).status_code == 403
        assert client.get("/coupons/business/999999", params={"user_id": owner.id}).status_code == 404
