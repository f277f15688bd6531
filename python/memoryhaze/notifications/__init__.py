"""Gift notification delivery (email)."""

from memoryhaze.notifications.notifier import (
    FakeNotifier,
    GiftNotifier,
    NotifyError,
    QueuedGiftNotifier,
    ResendGiftNotifier,
    build_gift_email,
    get_notifier,
)

__all__ = [
    "FakeNotifier",
    "GiftNotifier",
    "NotifyError",
    "QueuedGiftNotifier",
    "ResendGiftNotifier",
    "build_gift_email",
    "get_notifier",
]
