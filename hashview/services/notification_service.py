"""
Notification Service - Fire-and-forget push notifications

Enqueues delivery on the Celery worker. A failure here is logged and
never propagated: a saved review must not be unwound because a push
could not be queued.
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class NotificationService:
    """Dispatches push notifications via the background worker"""

    def notify(
        self,
        user_id: int,
        title: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Queue a notification. Returns False if it could not be queued."""
        from hashview.worker.tasks import send_push_notification

        try:
            send_push_notification.delay(user_id, title, body, metadata or {})
            return True
        except Exception as e:
            logger.error(f"Failed to queue notification for user {user_id}: {e}")
            return False


# Singleton instance
notification_service = NotificationService()
