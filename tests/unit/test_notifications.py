"""Unit tests for push notification dispatch."""

from unittest.mock import patch

import httpx
import pytest

from hashview.config import settings
from hashview.services.notification_service import NotificationService
from hashview.worker.tasks import deliver_push, send_push_notification


class TestDeliverPush:

    def test_simulated_without_gateway(self):
        result = deliver_push(3, "New Review", "Asha left a 5-star review", {})

        assert result["success"] is True
        assert result["simulated"] is True

    def test_posts_to_gateway(self, monkeypatch):
        monkeypatch.setattr(settings, "PUSH_API_URL", "https://push.example.com/send")
        monkeypatch.setattr(settings, "PUSH_API_TOKEN", "secret")

        with patch("hashview.worker.tasks.httpx.Client") as client_cls:
            client = client_cls.return_value.__enter__.return_value
            result = deliver_push(3, "Coupon Earned! 🎉", "10% off", {"coupon_id": 1})

        assert result["simulated"] is False
        _, kwargs = client.post.call_args
        assert kwargs["json"]["user_id"] == 3
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        client.post.return_value.raise_for_status.assert_called_once()

    def test_gateway_error_propagates(self, monkeypatch):
        monkeypatch.setattr(settings, "PUSH_API_URL", "https://push.example.com/send")

        with patch("hashview.worker.tasks.httpx.Client") as client_cls:
            client = client_cls.return_value.__enter__.return_value
            client.post.side_effect = httpx.ConnectError("refused")
            with pytest.raises(httpx.HTTPError):
                deliver_push(3, "New Review", "body", {})


class TestNotificationService:

    def test_queues_task(self):
        with patch("hashview.worker.tasks.send_push_notification") as task:
            assert NotificationService().notify(5, "New Review", "body", {"review_id": 9}) is True

        task.delay.assert_called_once_with(5, "New Review", "body", {"review_id": 9})

    def test_queue_failure_is_swallowed(self):
        with patch("hashview.worker.tasks.send_push_notification") as task:
            task.delay.side_effect = ConnectionError("broker down")
            assert NotificationService().notify(5, "New Review", "body") is False

    def test_eager_task_runs_inline(self):
        result = send_push_notification.apply(args=(5, "New Review", "body"))

        assert result.successful()
        assert result.get()["simulated"] is True
