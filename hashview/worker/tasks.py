"""
Celery Tasks for async processing
"""
import logging
from typing import Any, Dict, Optional

import httpx

from hashview.config import settings
from hashview.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def deliver_push(user_id: int, title: str, body: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """POST one notification to the push gateway, or simulate when none is configured."""
    if not settings.PUSH_API_URL:
        logger.warning(f"Push gateway not configured - simulating notification to user {user_id}: {title}")
        return {
            "success": True,
            "simulated": True,
            "user_id": user_id,
            "title": title
        }

    headers = {"Content-Type": "application/json"}
    if settings.PUSH_API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.PUSH_API_TOKEN}"

    with httpx.Client(timeout=settings.PUSH_TIMEOUT_SEC) as client:
        response = client.post(
            settings.PUSH_API_URL,
            json={
                "user_id": user_id,
                "title": title,
                "body": body,
                "data": data
            },
            headers=headers
        )
        response.raise_for_status()

    logger.info(f"Push notification sent to user {user_id}: {title}")
    return {"success": True, "simulated": False, "user_id": user_id, "title": title}


@celery_app.task(bind=True, max_retries=3, default_retry_delay=30)
def send_push_notification(
    self,
    user_id: int,
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None
):
    """Deliver a push notification, retrying transport failures."""
    try:
        return deliver_push(user_id, title, body, data or {})
    except httpx.HTTPError as e:
        logger.error(f"Push notification to user {user_id} failed: {e}")
        raise self.retry(exc=e)
