"""Celery application configuration.

Central configuration for Celery used by both API (for enqueuing)
and worker (for executing tasks).

Usage:
    from memoryhaze.celery import celery_app

    # Or import task directly:
    from memoryhaze.tasks import send_gift_email
    send_gift_email.apply_async(kwargs={...}, queue="email")
"""

from celery import Celery

from memoryhaze.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery("memoryhaze")

# Configure from settings
celery_app.conf.broker_url = settings.effective_celery_broker_url
celery_app.conf.result_backend = settings.effective_celery_result_backend

# Task configuration
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.timezone = "UTC"
celery_app.conf.enable_utc = True

# Queue routing for notification tasks
celery_app.conf.task_routes = {
    "send_gift_email": {"queue": "email"},
}

# Default queue
celery_app.conf.task_default_queue = "default"

celery_app.conf.task_always_eager = False


def get_celery_app() -> Celery:
    """Get the Celery application instance."""
    return celery_app
