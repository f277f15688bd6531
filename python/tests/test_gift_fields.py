"""Tests for gift field normalization.

Tests cover:
- template_id derived from occasion
- Legacy memory alias mirrors occasion only when unset
- Expiry filled in for completed gifts
- Asset id derivation for photos and audio
- Empty-string enum values become unset
- Purity and idempotence
- normalized_changes() returns only moved columns
"""

from datetime import UTC, datetime, timedelta

import pytest

from memoryhaze.db.models import Gift, GiftStatus, Occasion, Plan, TemplateId
from memoryhaze.services.gift_fields import (
    derive_photo_public_ids,
    normalize_gift_fields,
    normalized_changes,
)
from tests.factories import audio_url, photo_url


class TestTemplateDerivation:
    @pytest.mark.parametrize(
        "occasion,template",
        [
            ("birthday", TemplateId.birthday_celebration),
            ("anniversary", TemplateId.grand_anniversary),
            ("valentines", TemplateId.romantic_evening),
        ],
    )
    def test_template_follows_occasion(self, occasion, template):
        assert normalize_gift_fields({"occasion": occasion})["template_id"] == template

    def test_template_rederived_when_occasion_changes(self):
        """A stored template is overwritten by the occasion's template."""
        out = normalize_gift_fields(
            {"occasion": Occasion.birthday, "template_id": TemplateId.minimalist_love}
        )
        assert out["template_id"] == TemplateId.birthday_celebration

    def test_no_occasion_leaves_template_alone(self):
        out = normalize_gift_fields({"template_id": "minimalist-love"})
        assert out["template_id"] == TemplateId.minimalist_love


class TestMemoryAlias:
    def test_memory_mirrors_occasion_when_unset(self):
        assert normalize_gift_fields({"occasion": "valentines"})["memory"] == Occasion.valentines

    def test_existing_memory_kept(self):
        out = normalize_gift_fields({"occasion": "birthday", "memory": "anniversary"})
        assert out["memory"] == Occasion.anniversary


class TestExpiryFill:
    def test_completed_gift_gets_expiry(self):
        completed_at = datetime(2026, 1, 1, tzinfo=UTC)
        out = normalize_gift_fields(
            {"status": "completed", "completed_at": completed_at, "plan": "everlasting"}
        )
        assert out["expires_at"] == completed_at + timedelta(days=14)

    def test_existing_expiry_kept(self):
        completed_at = datetime(2026, 1, 1, tzinfo=UTC)
        expires_at = completed_at + timedelta(days=30)
        out = normalize_gift_fields(
            {
                "status": GiftStatus.completed,
                "completed_at": completed_at,
                "plan": Plan.momentum,
                "expires_at": expires_at,
            }
        )
        assert out["expires_at"] == expires_at

    def test_pending_gift_gets_no_expiry(self):
        out = normalize_gift_fields({"status": "pending", "plan": "momentum"})
        assert out.get("expires_at") is None


class TestAssetIds:
    def test_photo_ids_derived_skipping_underivable(self):
        photos = [
            photo_url("MemoryHaze/usr-00001/gift1/photo_1"),
            "https://example.com/not-a-store-url.jpg",
            photo_url("MemoryHaze/usr-00001/gift1/photo_2", ext="png"),
        ]
        assert derive_photo_public_ids(photos) == [
            "MemoryHaze/usr-00001/gift1/photo_1",
            "MemoryHaze/usr-00001/gift1/photo_2",
        ]

    def test_stored_photo_ids_not_replaced(self):
        out = normalize_gift_fields(
            {"photos": [photo_url("a/b/c")], "photo_public_ids": ["explicit/id"]}
        )
        assert out["photo_public_ids"] == ["explicit/id"]

    def test_audio_id_derived(self):
        out = normalize_gift_fields({"audio": audio_url("MemoryHaze/usr-00001/gift1/song")})
        assert out["audio_public_id"] == "MemoryHaze/usr-00001/gift1/song"


class TestNormalizationProperties:
    def test_empty_string_enums_become_unset(self):
        out = normalize_gift_fields({"occasion": "", "plan": "", "memory": ""})
        assert out["occasion"] is None
        assert out["plan"] is None
        assert out["memory"] is None
        assert "template_id" not in out

    def test_input_not_modified(self):
        fields = {"occasion": "birthday", "photos": [photo_url("a/b/c")]}
        snapshot = dict(fields)
        normalize_gift_fields(fields)
        assert fields == snapshot

    def test_idempotent(self):
        fields = {
            "occasion": "anniversary",
            "status": "completed",
            "completed_at": datetime(2026, 5, 1, tzinfo=UTC),
            "plan": "momentum",
            "photos": [photo_url("MemoryHaze/usr-00001/gift1/photo_1")],
            "audio": audio_url("MemoryHaze/usr-00001/gift1/song"),
        }
        once = normalize_gift_fields(fields)
        assert normalize_gift_fields(once) == once


class TestNormalizedChanges:
    def test_only_requested_and_moved_columns_returned(self):
        """A status change on a completed-ready gift also reports the derived expiry."""
        completed_at = datetime(2026, 6, 1, tzinfo=UTC)
        gift = Gift(
            recipient_name="Alex",
            occasion=Occasion.birthday,
            template_id=TemplateId.birthday_celebration,
            memory=Occasion.birthday,
            plan=Plan.momentum,
            status=GiftStatus.verified,
            photos=[],
            photo_public_ids=[],
        )

        changes = normalized_changes(
            gift, {"status": GiftStatus.completed, "completed_at": completed_at}
        )

        assert changes == {
            "status": GiftStatus.completed,
            "completed_at": completed_at,
            "expires_at": completed_at + timedelta(days=7),
        }


class TestEntityPredicates:
    """Gift.is_expired and Gift.is_viewable on unsaved rows."""

    NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def _gift(self, **overrides) -> Gift:
        values = {
            "status": GiftStatus.completed,
            "access_enabled": True,
            "permanently_deleted": False,
            "expires_at": self.NOW + timedelta(days=1),
        }
        values.update(overrides)
        return Gift(**values)

    def test_no_expiry_never_expires(self):
        assert self._gift(expires_at=None).is_expired(self.NOW) is False

    def test_expiry_is_strictly_in_the_past(self):
        assert self._gift(expires_at=self.NOW).is_expired(self.NOW) is False
        assert self._gift(expires_at=self.NOW - timedelta(seconds=1)).is_expired(self.NOW)

    def test_viewable_when_every_condition_holds(self):
        assert self._gift().is_viewable(self.NOW) is True

    def test_viewable_without_expiry(self):
        assert self._gift(expires_at=None).is_viewable(self.NOW) is True

    @pytest.mark.parametrize(
        "status", [GiftStatus.pending, GiftStatus.verified, GiftStatus.rejected]
    )
    def test_not_viewable_before_completion(self, status):
        assert self._gift(status=status).is_viewable(self.NOW) is False

    def test_not_viewable_when_access_disabled(self):
        assert self._gift(access_enabled=False).is_viewable(self.NOW) is False

    def test_not_viewable_when_tombstoned(self):
        assert self._gift(permanently_deleted=True).is_viewable(self.NOW) is False

    def test_not_viewable_when_expired(self):
        gift = self._gift(expires_at=self.NOW - timedelta(hours=1))
        assert gift.is_viewable(self.NOW) is False
