"""Celery task for gift-ready email delivery.

Enqueued by QueuedGiftNotifier once a gift is completed.
- Sends through ResendGiftNotifier
- Retryable failures (network, 429, 5xx) retry with exponential backoff, at most 3 times
- Rejected messages (4xx) are logged and dropped
"""

from memoryhaze.celery import celery_app
from memoryhaze.config import get_settings
from memoryhaze.logging import clear_task_context, configure_task_logging, get_logger
from memoryhaze.notifications.notifier import NotifyError, get_resend_notifier

logger = get_logger(__name__)

RETRY_BASE_DELAY_SECONDS = 30


@celery_app.task(bind=True, max_retries=3, name="send_gift_email")
def send_gift_email(
    self,
    recipient: str,
    gift_link: str,
    occasion: str | None = None,
    request_id: str | None = None,
) -> dict:
    """Send the gift-ready email.

    Returns:
        Dict with a ``status`` of sent, skipped or failed.
    """
    configure_task_logging(request_id, "send_gift_email", self.request.id)
    try:
        notifier = get_resend_notifier(get_settings())
        if notifier is None:
            logger.warning("send_gift_email_skipped", reason="resend_not_configured")
            return {"status": "skipped", "reason": "resend_not_configured"}

        try:
            notifier.notify(recipient, gift_link, occasion)
        except NotifyError as e:
            if not e.retryable:
                logger.warning("send_gift_email_rejected", error=e.message)
                return {"status": "failed", "error": e.message}

            logger.warning(
                "send_gift_email_retrying",
                error=e.message,
                attempt=self.request.retries + 1,
            )
            raise self.retry(
                exc=e, countdown=RETRY_BASE_DELAY_SECONDS * (2**self.request.retries)
            ) from e

        return {"status": "sent"}
    finally:
        clear_task_context()
