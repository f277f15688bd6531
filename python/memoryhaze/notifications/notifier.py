"""Gift notification delivery.

Tells a gift's recipient that their gift is ready, with the secure link.

Implementations:
- ResendGiftNotifier: sends directly through the Resend HTTP API (httpx)
- QueuedGiftNotifier: enqueues the send_gift_email Celery task, which sends
  with ResendGiftNotifier and retries on failure
- FakeNotifier: records sends in memory for tests and local development

All implementations raise NotifyError on failure. Callers in the lifecycle
treat notification as fire-and-forget and only log the error.
"""

import html
from dataclasses import dataclass
from typing import Protocol

import httpx

from memoryhaze.config import Settings
from memoryhaze.logging import get_logger, get_request_id

logger = get_logger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 20.0

OCCASION_LABELS = {
    "birthday": "Birthday",
    "anniversary": "Anniversary",
    "valentines": "Valentine's Day",
}


class NotifyError(Exception):
    """Notification could not be delivered or enqueued."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class GiftNotifier(Protocol):
    def notify(self, recipient: str, gift_link: str, occasion: str | None) -> None:
        """Deliver a gift-ready notification.

        Raises:
            NotifyError: If delivery fails.
        """
        ...


@dataclass(frozen=True)
class GiftEmail:
    subject: str
    html: str
    text: str


def format_occasion(occasion: str | None) -> str:
    if not occasion:
        return "You"
    return OCCASION_LABELS.get(occasion, occasion)


def build_gift_email(gift_link: str, occasion: str | None) -> GiftEmail:
    """Render the gift-ready email."""
    label = format_occasion(occasion)
    subject = f"You've Received a Special Gift for {label}!"
    safe_link = html.escape(gift_link, quote=True)
    body_html = (
        "<!DOCTYPE html><html><body>"
        "<h1>MemoryHaze</h1>"
        f"<p>Someone special created a personalized song for your {html.escape(label)}.</p>"
        f'<p><a href="{safe_link}">Open your gift</a></p>'
        "<p>This link is personal to you and only works while you are signed in.</p>"
        "</body></html>"
    )
    body_text = (
        f"Someone special created a personalized song for your {label}.\n\n"
        f"Open your gift: {gift_link}\n\n"
        "This link is personal to you and only works while you are signed in."
    )
    return GiftEmail(subject=subject, html=body_html, text=body_text)


class ResendGiftNotifier:
    """Send gift emails through the Resend API."""

    def __init__(self, api_key: str, sender: str, timeout: float = RESEND_TIMEOUT_SECONDS):
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout

    def notify(self, recipient: str, gift_link: str, occasion: str | None) -> None:
        email = build_gift_email(gift_link, occasion)
        payload = {
            "from": self._sender,
            "to": [recipient],
            "subject": email.subject,
            "html": email.html,
            "text": email.text,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(RESEND_SEND_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise NotifyError(f"Resend request failed: {type(e).__name__}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise NotifyError(f"Resend unavailable: {response.status_code}")
        if response.status_code >= 400:
            raise NotifyError(
                f"Resend rejected message: {response.status_code} {response.text}",
                retryable=False,
            )

        message_id = None
        try:
            message_id = response.json().get("id")
        except ValueError:
            pass
        logger.info("gift_email_sent", message_id=message_id, occasion=occasion)


class QueuedGiftNotifier:
    """Hand notifications to the background worker."""

    def notify(self, recipient: str, gift_link: str, occasion: str | None) -> None:
        # Imported lazily so the API process only loads Celery when enqueuing
        from memoryhaze.tasks.send_gift_email import send_gift_email

        try:
            send_gift_email.apply_async(
                kwargs={
                    "recipient": recipient,
                    "gift_link": gift_link,
                    "occasion": occasion,
                    "request_id": get_request_id(),
                },
            )
        except Exception as e:
            raise NotifyError(f"Failed to enqueue gift email: {type(e).__name__}") from e


class FakeNotifier:
    """Records notifications instead of sending them."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail_with: str | None = None

    def notify(self, recipient: str, gift_link: str, occasion: str | None) -> None:
        if self.fail_with:
            raise NotifyError(self.fail_with)
        self.sent.append({"recipient": recipient, "gift_link": gift_link, "occasion": occasion})

    def clear(self) -> None:
        self.sent.clear()
        self.fail_with = None


def get_resend_notifier(settings: Settings) -> ResendGiftNotifier | None:
    if not settings.resend_api_key:
        return None
    return ResendGiftNotifier(api_key=settings.resend_api_key, sender=settings.email_from)


def get_notifier(settings: Settings) -> GiftNotifier:
    """Get the configured notifier.

    Returns:
        QueuedGiftNotifier if a Celery broker and Resend key are configured,
        ResendGiftNotifier if only the Resend key is set, FakeNotifier otherwise.
    """
    if settings.resend_api_key and settings.effective_celery_broker_url:
        return QueuedGiftNotifier()

    resend = get_resend_notifier(settings)
    if resend is not None:
        return resend

    logger.warning("notifier_not_configured", detail="gift emails will be recorded, not sent")
    return FakeNotifier()
