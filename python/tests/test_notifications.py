"""Tests for gift notification delivery.

Tests cover:
- Email rendering
- ResendGiftNotifier requests and retryable/non-retryable failures (respx)
- Notifier selection from settings
- The send_gift_email task outcomes
"""

import json

import httpx
import pytest
import respx
from httpx import Response

from memoryhaze.config import clear_settings_cache, get_settings
from memoryhaze.notifications.notifier import (
    RESEND_SEND_URL,
    FakeNotifier,
    NotifyError,
    QueuedGiftNotifier,
    ResendGiftNotifier,
    build_gift_email,
    get_notifier,
)
from memoryhaze.tasks.send_gift_email import send_gift_email

GIFT_LINK = "https://memoryhaze.test/gifts/8f14e45f-ceea-467f-a0e6-0b1ff9d3c5a1/abc%3Adef"


class TestBuildGiftEmail:
    @pytest.mark.parametrize(
        "occasion,label",
        [
            ("birthday", "Birthday"),
            ("anniversary", "Anniversary"),
            ("valentines", "Valentine's Day"),
        ],
    )
    def test_subject_names_occasion(self, occasion, label):
        email = build_gift_email(GIFT_LINK, occasion)
        assert email.subject == f"You've Received a Special Gift for {label}!"

    def test_bodies_carry_link(self):
        email = build_gift_email(GIFT_LINK, "birthday")
        assert GIFT_LINK in email.text
        assert f'href="{GIFT_LINK}"' in email.html

    def test_missing_occasion(self):
        assert build_gift_email(GIFT_LINK, None).subject == "You've Received a Special Gift for You!"


class TestResendGiftNotifier:
    @pytest.fixture
    def notifier(self) -> ResendGiftNotifier:
        return ResendGiftNotifier(api_key="re_test", sender="MemoryHaze <gifts@memoryhaze.test>")

    @respx.mock
    def test_sends_email(self, notifier):
        route = respx.post(RESEND_SEND_URL).mock(return_value=Response(200, json={"id": "msg_1"}))

        notifier.notify("owner@example.com", GIFT_LINK, "anniversary")

        request = route.calls.last.request
        body = json.loads(request.content)
        assert request.headers["authorization"] == "Bearer re_test"
        assert body["to"] == ["owner@example.com"]
        assert body["from"] == "MemoryHaze <gifts@memoryhaze.test>"
        assert body["subject"] == "You've Received a Special Gift for Anniversary!"

    @respx.mock
    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_transient_failures_are_retryable(self, notifier, status):
        respx.post(RESEND_SEND_URL).mock(return_value=Response(status))

        with pytest.raises(NotifyError) as exc_info:
            notifier.notify("owner@example.com", GIFT_LINK, "birthday")
        assert exc_info.value.retryable is True

    @respx.mock
    def test_rejected_message_is_not_retryable(self, notifier):
        respx.post(RESEND_SEND_URL).mock(
            return_value=Response(422, json={"message": "Invalid `to` field"})
        )

        with pytest.raises(NotifyError) as exc_info:
            notifier.notify("not-an-email", GIFT_LINK, "birthday")
        assert exc_info.value.retryable is False

    @respx.mock
    def test_transport_error_is_retryable(self, notifier):
        respx.post(RESEND_SEND_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

        with pytest.raises(NotifyError) as exc_info:
            notifier.notify("owner@example.com", GIFT_LINK, "birthday")
        assert exc_info.value.retryable is True


class TestFakeNotifier:
    def test_records_sends(self):
        notifier = FakeNotifier()
        notifier.notify("owner@example.com", GIFT_LINK, "birthday")
        assert notifier.sent == [
            {"recipient": "owner@example.com", "gift_link": GIFT_LINK, "occasion": "birthday"}
        ]

    def test_fail_with(self):
        notifier = FakeNotifier()
        notifier.fail_with = "smtp down"
        with pytest.raises(NotifyError, match="smtp down"):
            notifier.notify("owner@example.com", GIFT_LINK, "birthday")
        assert notifier.sent == []


class TestGetNotifier:
    def test_fake_without_resend_key(self):
        settings = get_settings().model_copy(update={"resend_api_key": None})
        assert isinstance(get_notifier(settings), FakeNotifier)

    def test_direct_resend_without_broker(self):
        settings = get_settings().model_copy(
            update={
                "resend_api_key": "re_test",
                "redis_url": None,
                "celery_broker_url": None,
            }
        )
        assert isinstance(get_notifier(settings), ResendGiftNotifier)

    def test_queued_with_broker(self):
        settings = get_settings().model_copy(
            update={"resend_api_key": "re_test", "redis_url": "redis://localhost:6379/0"}
        )
        assert isinstance(get_notifier(settings), QueuedGiftNotifier)


class TestSendGiftEmailTask:
    @pytest.fixture
    def resend_configured(self, monkeypatch):
        monkeypatch.setenv("RESEND_API_KEY", "re_test")
        clear_settings_cache()
        yield
        clear_settings_cache()

    @respx.mock
    def test_sent(self, resend_configured):
        route = respx.post(RESEND_SEND_URL).mock(return_value=Response(200, json={"id": "msg_1"}))

        result = send_gift_email.apply(
            kwargs={"recipient": "owner@example.com", "gift_link": GIFT_LINK, "occasion": "birthday"}
        ).get()

        assert result == {"status": "sent"}
        assert route.call_count == 1

    @respx.mock
    def test_rejected_message_not_retried(self, resend_configured):
        route = respx.post(RESEND_SEND_URL).mock(return_value=Response(422))

        result = send_gift_email.apply(
            kwargs={"recipient": "bad", "gift_link": GIFT_LINK, "occasion": "birthday"}
        ).get()

        assert result["status"] == "failed"
        assert route.call_count == 1

    def test_skipped_without_resend_key(self, monkeypatch):
        monkeypatch.delenv("RESEND_API_KEY", raising=False)
        clear_settings_cache()
        try:
            result = send_gift_email.apply(
                kwargs={"recipient": "owner@example.com", "gift_link": GIFT_LINK}
            ).get()
        finally:
            clear_settings_cache()

        assert result["status"] == "skipped"
