"""Gift field normalization.

Every write to a gift (create, lifecycle transition, maintenance backfill)
passes its field values through normalize_gift_fields() before they reach the
database. The pass is pure and idempotent and runs in a fixed order:

1. Empty-string enum fields become unset (None)
2. template_id is derived from occasion
3. The legacy ``memory`` alias mirrors occasion when unset
4. A completed gift with completed_at but no expires_at gets its expiry
5. photo_public_ids are derived from photos when empty; underivable photos are skipped
6. audio_public_id is derived from audio when unset
"""

from typing import Any

from memoryhaze.db.models import Gift, GiftStatus, Occasion, Plan, TemplateId
from memoryhaze.services.plans import compute_expiry
from memoryhaze.storage.paths import derive_asset_id

OCCASION_TEMPLATES: dict[Occasion, TemplateId] = {
    Occasion.birthday: TemplateId.birthday_celebration,
    Occasion.anniversary: TemplateId.grand_anniversary,
    Occasion.valentines: TemplateId.romantic_evening,
}

_ENUM_FIELDS: dict[str, type] = {
    "occasion": Occasion,
    "memory": Occasion,
    "plan": Plan,
    "template_id": TemplateId,
    "status": GiftStatus,
}

# Columns carried through normalization (everything a write may touch)
GIFT_FIELDS = (
    "recipient_name",
    "occasion",
    "occasion_date",
    "scenarios",
    "song_genre",
    "photos",
    "photo_public_ids",
    "plan",
    "message",
    "memory",
    "template_id",
    "audio",
    "audio_public_id",
    "lyrics",
    "status",
    "submitted_at",
    "verified_at",
    "completed_at",
    "rejected_at",
    "rejection_reason",
    "assigned_at",
    "expires_at",
    "access_enabled",
    "permanently_deleted",
    "deleted_at",
)


def _coerce_enum(enum_cls: type, value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


def derive_photo_public_ids(photos: list[str] | None) -> list[str]:
    ids = []
    for url in photos or []:
        asset_id = derive_asset_id(url)
        if asset_id:
            ids.append(asset_id)
    return ids


def normalize_gift_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Return a normalized copy of a gift's field values.

    Args:
        fields: Column name to value. Missing keys are treated as unset.

    Returns:
        New dict with derived fields filled in. The input is not modified.
    """
    out = dict(fields)

    for name, enum_cls in _ENUM_FIELDS.items():
        if name in out:
            out[name] = _coerce_enum(enum_cls, out[name])

    occasion = out.get("occasion")
    if isinstance(occasion, Occasion):
        out["template_id"] = OCCASION_TEMPLATES[occasion]
        if not out.get("memory"):
            out["memory"] = occasion

    if (
        out.get("status") == GiftStatus.completed
        and out.get("completed_at") is not None
        and out.get("expires_at") is None
    ):
        out["expires_at"] = compute_expiry(out["completed_at"], out.get("plan"))

    if not out.get("photo_public_ids") and out.get("photos"):
        out["photo_public_ids"] = derive_photo_public_ids(out["photos"])

    if not out.get("audio_public_id") and out.get("audio"):
        out["audio_public_id"] = derive_asset_id(out["audio"])

    return out


def gift_snapshot(gift: Gift) -> dict[str, Any]:
    """Current column values of a loaded gift, keyed by column name."""
    return {name: getattr(gift, name) for name in GIFT_FIELDS}


def normalized_changes(gift: Gift, changes: dict[str, Any]) -> dict[str, Any]:
    """Normalize ``changes`` applied on top of ``gift``.

    Returns the requested changes plus every derived field whose value moved,
    ready to use as the SET clause of an UPDATE.
    """
    before = gift_snapshot(gift)
    after = normalize_gift_fields({**before, **changes})
    return {
        name: value
        for name, value in after.items()
        if name in changes or value != before.get(name)
    }
