"""Gift lifecycle service layer.

Owns every status and access mutation of a gift:

    pending --verify--> verified --complete--> completed
    pending/verified --reject--> rejected

plus the admin access toggle and the permanent-delete tombstone.

Concurrency:
    Each mutation is one conditional UPDATE guarded on the status observed
    when the gift was loaded (and on the gift not being tombstoned). When the
    guard matches no row a concurrent writer won; the gift is re-read and the
    caller gets InvalidTransitionError against the fresh status.

Side effects:
    Asset store deletions and gift notifications are best-effort. Their
    failures are logged with gift and asset ids for manual follow-up and never
    fail the owning transition.
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from memoryhaze.db.models import Gift, GiftStatus, User
from memoryhaze.errors import (
    ApiErrorCode,
    ExpiredGrantError,
    FieldValidationError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
)
from memoryhaze.logging import get_logger
from memoryhaze.notifications.notifier import GiftNotifier, NotifyError
from memoryhaze.schemas.gift import GiftRequestCreate
from memoryhaze.services.crypto import CryptoError, encode_identity
from memoryhaze.services.gift_fields import normalize_gift_fields, normalized_changes
from memoryhaze.services.plans import compute_expiry, duration_days
from memoryhaze.storage.client import AssetKind, AssetStoreBase, AssetStoreError
from memoryhaze.storage.paths import folder_from_asset_id

logger = get_logger(__name__)

DEFAULT_REJECTION_REASON = "Your gift request could not be fulfilled."

_CLEARED_ASSETS: dict[str, Any] = {
    "photos": [],
    "photo_public_ids": [],
    "audio": None,
    "audio_public_id": None,
}


# =============================================================================
# Loading helpers
# =============================================================================


def parse_gift_id(gift_id: UUID | str) -> UUID:
    """Parse a gift id; anything that isn't a UUID is simply not found."""
    if isinstance(gift_id, UUID):
        return gift_id
    try:
        return UUID(str(gift_id))
    except ValueError as e:
        raise NotFoundError(ApiErrorCode.E_GIFT_NOT_FOUND, "Gift not found") from e


def load_gift(db: Session, gift_id: UUID | str) -> Gift:
    """Load a gift by id, reading fresh state from the database.

    Raises:
        NotFoundError: If the gift doesn't exist.
    """
    gift = db.get(Gift, parse_gift_id(gift_id), populate_existing=True)
    if gift is None:
        raise NotFoundError(ApiErrorCode.E_GIFT_NOT_FOUND, "Gift not found")
    return gift


def _require_not_tombstoned(gift: Gift, action: str) -> None:
    if gift.permanently_deleted:
        raise InvalidOperationError(f"Cannot {action} a permanently deleted gift")


def _require_status(gift: Gift, expected: Sequence[GiftStatus]) -> None:
    if gift.status not in expected:
        raise InvalidTransitionError(gift.status.value, _expected_label(expected))


def _expected_label(expected: Sequence[GiftStatus]) -> str | list[str]:
    values = [s.value for s in expected]
    return values[0] if len(values) == 1 else values


def _conditional_write(
    db: Session,
    gift: Gift,
    changes: dict[str, Any],
    expected: Sequence[GiftStatus],
) -> Gift:
    """Apply normalized ``changes`` only if the gift is still as observed.

    Raises:
        InvalidTransitionError: If the status moved since the gift was loaded.
        InvalidOperationError: If the gift was tombstoned since it was loaded.
    """
    values = normalized_changes(gift, changes)
    observed_status = gift.status

    try:
        result = db.execute(
            update(Gift)
            .where(
                Gift.id == gift.id,
                Gift.status == observed_status,
                Gift.permanently_deleted.is_(False),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            current = load_gift(db, gift.id)
            logger.info(
                "gift_write_conflict",
                gift_id=str(gift.id),
                observed_status=observed_status.value,
                current_status=current.status.value,
            )
            _require_not_tombstoned(current, "modify")
            raise InvalidTransitionError(current.status.value, _expected_label(expected))
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(gift)
    return gift


# =============================================================================
# Asset cleanup
# =============================================================================


def _asset_refs(gift: Gift) -> tuple[list[str], str | None]:
    """Asset ids for a gift, deriving any that were never stored."""
    fields = normalize_gift_fields(
        {
            "photos": gift.photos,
            "photo_public_ids": gift.photo_public_ids,
            "audio": gift.audio,
            "audio_public_id": gift.audio_public_id,
        }
    )
    return list(fields.get("photo_public_ids") or []), fields.get("audio_public_id")


def _delete_assets(asset_store: AssetStoreBase, gift_id: UUID, photo_ids, audio_id) -> int:
    """Delete each asset by id. Returns the number of failures."""
    targets = [(asset_id, AssetKind.image) for asset_id in photo_ids]
    if audio_id:
        targets.append((audio_id, AssetKind.audio))

    failures = 0
    for asset_id, kind in targets:
        try:
            asset_store.delete_by_id(asset_id, kind)
        except AssetStoreError as e:
            failures += 1
            logger.warning(
                "asset_delete_failed",
                gift_id=str(gift_id),
                asset_id=asset_id,
                kind=kind.value,
                error=e.message,
            )
    return failures


def _delete_asset_folder(asset_store: AssetStoreBase, gift_id: UUID, prefix: str) -> None:
    for kind in (AssetKind.image, AssetKind.audio):
        try:
            asset_store.delete_by_prefix(prefix, kind)
        except AssetStoreError as e:
            logger.warning(
                "asset_folder_delete_failed",
                gift_id=str(gift_id),
                prefix=prefix,
                kind=kind.value,
                error=e.message,
            )


# =============================================================================
# Operations
# =============================================================================


def create_gift(db: Session, user_id: UUID, request: GiftRequestCreate) -> Gift:
    """Create a gift request in status ``pending``.

    Args:
        db: Database session.
        user_id: Owner of the new gift.
        request: Validated submission.

    Returns:
        The persisted gift.
    """
    fields = normalize_gift_fields(
        {
            "recipient_name": request.recipient_name,
            "occasion": request.occasion,
            "occasion_date": request.occasion_date,
            "scenarios": list(request.scenarios),
            "song_genre": request.song_genre,
            "photos": list(request.photos),
            "photo_public_ids": list(request.photo_public_ids or []),
            "plan": request.plan,
            "message": request.message or "",
            "status": GiftStatus.pending,
            "submitted_at": datetime.now(UTC),
        }
    )
    gift = Gift(user_id=user_id, **fields)

    try:
        db.add(gift)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(gift)
    logger.info(
        "gift_request_created",
        gift_id=str(gift.id),
        user_id=str(user_id),
        occasion=gift.occasion.value if gift.occasion else None,
        plan=gift.plan.value if gift.plan else None,
    )
    return gift


def verify_gift(db: Session, gift_id: UUID | str) -> Gift:
    """Accept a pending gift request.

    Raises:
        NotFoundError: Unknown gift.
        InvalidOperationError: Gift is tombstoned.
        InvalidTransitionError: Gift is not pending.
    """
    gift = load_gift(db, gift_id)
    _require_not_tombstoned(gift, "verify")
    expected = [GiftStatus.pending]
    _require_status(gift, expected)

    gift = _conditional_write(
        db,
        gift,
        {"status": GiftStatus.verified, "verified_at": datetime.now(UTC)},
        expected,
    )
    logger.info("gift_verified", gift_id=str(gift.id))
    return gift


def reject_gift(
    db: Session,
    gift_id: UUID | str,
    reason: str | None,
    asset_store: AssetStoreBase,
) -> Gift:
    """Decline a pending or verified gift request and purge its assets.

    Asset deletion is best-effort; the rejection commits regardless.

    Raises:
        NotFoundError: Unknown gift.
        InvalidOperationError: Gift is tombstoned.
        InvalidTransitionError: Gift is completed or already rejected.
    """
    gift = load_gift(db, gift_id)
    _require_not_tombstoned(gift, "reject")
    expected = [GiftStatus.pending, GiftStatus.verified]
    _require_status(gift, expected)

    photo_ids, audio_id = _asset_refs(gift)
    failures = _delete_assets(asset_store, gift.id, photo_ids, audio_id)

    reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
    gift = _conditional_write(
        db,
        gift,
        {
            "status": GiftStatus.rejected,
            "rejected_at": datetime.now(UTC),
            "rejection_reason": reason,
            **_CLEARED_ASSETS,
        },
        expected,
    )
    logger.info(
        "gift_rejected",
        gift_id=str(gift.id),
        assets_deleted=len(photo_ids) + (1 if audio_id else 0) - failures,
        asset_failures=failures,
    )
    return gift


def complete_gift(
    db: Session,
    gift_id: UUID | str,
    *,
    audio: str,
    lyrics: str,
    audio_public_id: str | None = None,
    notifier: GiftNotifier | None = None,
    frontend_url: str | None = None,
) -> Gift:
    """Attach the produced song to a verified gift and open recipient access.

    Sets access_enabled and an expiry of completed_at + plan duration. After
    the write commits, the owner is notified with their secure link; a
    notification failure is logged and otherwise ignored.

    Raises:
        NotFoundError: Unknown gift.
        InvalidOperationError: Gift is tombstoned.
        InvalidTransitionError: Gift is not verified.
        FieldValidationError: Audio or lyrics missing.
    """
    gift = load_gift(db, gift_id)
    _require_not_tombstoned(gift, "complete")
    expected = [GiftStatus.verified]
    _require_status(gift, expected)

    audio = (audio or "").strip()
    errors = []
    if not audio:
        errors.append({"field": "audio", "message": "Audio is required"})
    if not (lyrics or "").strip():
        errors.append({"field": "lyrics", "message": "Lyrics are required"})
    if errors:
        raise FieldValidationError(errors)

    now = datetime.now(UTC)
    gift = _conditional_write(
        db,
        gift,
        {
            "status": GiftStatus.completed,
            "completed_at": now,
            "assigned_at": now,
            "audio": audio,
            "audio_public_id": (audio_public_id or "").strip() or None,
            "lyrics": lyrics,
            "access_enabled": True,
            "expires_at": compute_expiry(now, gift.plan),
        },
        expected,
    )
    logger.info(
        "gift_completed",
        gift_id=str(gift.id),
        expires_at=gift.expires_at.isoformat() if gift.expires_at else None,
    )

    if notifier is not None and frontend_url:
        _notify_owner(db, gift, notifier, frontend_url)

    return gift


def build_gift_link(frontend_url: str, gift_id: UUID, token: str) -> str:
    """Secure link for a gift: ``{frontend}/gifts/{gift_id}/{token}``."""
    return f"{frontend_url.rstrip('/')}/gifts/{gift_id}/{quote(token, safe='')}"


def _notify_owner(db: Session, gift: Gift, notifier: GiftNotifier, frontend_url: str) -> None:
    owner = db.get(User, gift.user_id)
    if owner is None or not owner.email:
        logger.warning("gift_notification_skipped", gift_id=str(gift.id), reason="no_email")
        return

    try:
        link = build_gift_link(frontend_url, gift.id, encode_identity(str(gift.user_id)))
        notifier.notify(owner.email, link, gift.occasion.value if gift.occasion else None)
    except (NotifyError, CryptoError) as e:
        logger.warning(
            "gift_notification_failed",
            gift_id=str(gift.id),
            user_id=str(gift.user_id),
            error=str(e),
        )
        return

    logger.info("gift_notification_sent", gift_id=str(gift.id), user_id=str(gift.user_id))


def set_access(
    db: Session,
    gift_id: UUID | str,
    enabled: bool,
    reset_expiry: bool = False,
) -> Gift:
    """Enable or disable recipient access.

    Enabling an expired gift requires ``reset_expiry``. When enabling with a
    reset (or past expiry) on a plan with a finite duration, the access window
    is re-anchored at now. A reset on a plan without a duration clears the
    expiry.

    Raises:
        NotFoundError: Unknown gift.
        InvalidOperationError: Gift is tombstoned.
        ExpiredGrantError: Enabling an expired gift without reset_expiry.
    """
    gift = load_gift(db, gift_id)
    _require_not_tombstoned(gift, "change access on")

    now = datetime.now(UTC)
    changes: dict[str, Any] = {"access_enabled": enabled}

    if enabled:
        expired = gift.is_expired(now)
        if expired and not reset_expiry:
            raise ExpiredGrantError()
        if expired or reset_expiry:
            if duration_days(gift.plan) is not None:
                changes["assigned_at"] = now
                changes["expires_at"] = compute_expiry(now, gift.plan)
            else:
                changes["expires_at"] = None

    gift = _conditional_write(db, gift, changes, [gift.status])
    logger.info(
        "gift_access_updated",
        gift_id=str(gift.id),
        access_enabled=enabled,
        reset_expiry=reset_expiry,
        expires_at=gift.expires_at.isoformat() if gift.expires_at else None,
    )
    return gift


def permanent_delete(db: Session, gift_id: UUID | str, asset_store: AssetStoreBase) -> Gift:
    """Tombstone a gift and purge its stored assets.

    Idempotent: a gift that is already tombstoned is returned unchanged.
    Assets are deleted one by one, then the gift's folder is bulk-deleted for
    both asset kinds to catch anything whose id was never recorded.

    Raises:
        NotFoundError: Unknown gift.
    """
    gift = load_gift(db, gift_id)
    if gift.permanently_deleted:
        logger.info("gift_already_deleted", gift_id=str(gift.id))
        return gift

    photo_ids, audio_id = _asset_refs(gift)
    failures = _delete_assets(asset_store, gift.id, photo_ids, audio_id)

    first_asset = photo_ids[0] if photo_ids else audio_id
    prefix = folder_from_asset_id(first_asset)
    if prefix:
        _delete_asset_folder(asset_store, gift.id, prefix)

    values = normalized_changes(
        gift,
        {
            "permanently_deleted": True,
            "deleted_at": datetime.now(UTC),
            "access_enabled": False,
            **_CLEARED_ASSETS,
        },
    )
    try:
        db.execute(
            update(Gift)
            .where(Gift.id == gift.id, Gift.permanently_deleted.is_(False))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(gift)
    logger.info(
        "gift_permanently_deleted",
        gift_id=str(gift.id),
        asset_failures=failures,
        folder=prefix,
    )
    return gift


def list_requests(db: Session, status: GiftStatus | None = None) -> list[Gift]:
    """All gift requests for the admin queue, newest first."""
    query = select(Gift).order_by(Gift.created_at.desc())
    if status is not None:
        query = query.where(Gift.status == status)
    return list(db.scalars(query))
