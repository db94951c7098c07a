"""
Celery Application Configuration
"""
from celery import Celery
from hashview.config import settings

# Create Celery app
celery_app = Celery(
    "hashview_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "hashview.worker.tasks"
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60,
    task_soft_time_limit=50,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,  # Results expire after 1 hour
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
)

# Task routing
celery_app.conf.task_routes = {
    "hashview.worker.tasks.send_push_notification": {"queue": "notifications"},
    "hashview.worker.tasks.*": {"queue": "default"},
}
