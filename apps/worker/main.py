"""Celery worker entrypoint.

Run with: celery -A apps.worker.main:celery_app worker -Q email,default --loglevel=info

Task definitions are in the memoryhaze.tasks package and are registered by
explicit import below - no autodiscovery.

Queue Configuration:
- email: gift-ready notifications (send_gift_email)
- default: General background tasks
"""

from celery.signals import worker_process_init

from memoryhaze.celery import celery_app
from memoryhaze.logging import configure_logging, get_logger

# Import tasks to register them with Celery
from memoryhaze.tasks import send_gift_email  # noqa: F401


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    """Configure structlog when a worker process starts."""
    configure_logging()
    logger = get_logger(__name__)
    logger.info("celery_worker_started", queues=["email", "default"])


# Command: celery -A apps.worker.main:celery_app worker ...
__all__ = ["celery_app"]
