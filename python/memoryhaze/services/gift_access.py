"""Gift read paths and the recipient access gate.

Expiry is enforced lazily: there is no background scheduler. Every read of a
user's gifts first runs sweep_expired_gifts() for that user, and the gate
re-checks expiry itself, so a stale ``access_enabled`` flag is never observable.

Gate order for a shared link (view_gift_with_token):
    1. Decode the link token         -> InvalidLinkError
    2. Token identity == caller      -> AccessDeniedError(intended_for_different_user)
    3. Sweep the caller's gifts
    4. Load the gift                 -> NotFoundError
    5. Gift owner == caller          -> AccessDeniedError
    6. Not tombstoned                -> GoneError
    7. Access enabled                -> AccessDisabledError (AccessExpiredError
                                        when expires_at <= now)
    8. Not past expiry               -> flip access off, AccessExpiredError
    9. Completed                     -> AccessDisabledError

The owner path (get_owned_gift) runs steps 3-9 only.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from memoryhaze.db.models import Gift
from memoryhaze.errors import (
    AccessDeniedError,
    AccessDisabledError,
    AccessExpiredError,
    GoneError,
    InvalidLinkError,
)
from memoryhaze.logging import get_logger
from memoryhaze.services.crypto import DecodeError, decode_identity
from memoryhaze.services.gift_lifecycle import load_gift

logger = get_logger(__name__)


def sweep_expired_gifts(db: Session, user_id: UUID, now: datetime | None = None) -> int:
    """Disable access on every gift the user owns whose window has closed.

    A window closes at ``expires_at`` itself (inclusive). Idempotent batch
    update; commits immediately.

    Returns:
        Number of gifts whose access was switched off.
    """
    now = now or datetime.now(UTC)
    try:
        result = db.execute(
            update(Gift)
            .where(
                Gift.user_id == user_id,
                Gift.permanently_deleted.is_(False),
                Gift.access_enabled.is_(True),
                Gift.expires_at.is_not(None),
                Gift.expires_at <= now,
            )
            .values(access_enabled=False)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    swept = result.rowcount or 0
    if swept:
        logger.info("gifts_expired", user_id=str(user_id), count=swept)
    return swept


def list_gifts(db: Session, user_id: UUID) -> list[Gift]:
    """The user's gifts, newest first (after sweeping expired access)."""
    sweep_expired_gifts(db, user_id)
    query = (
        select(Gift)
        .where(Gift.user_id == user_id)
        .order_by(Gift.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(db.scalars(query).all())


def _expire_access(db: Session, gift: Gift) -> None:
    try:
        db.execute(
            update(Gift)
            .where(Gift.id == gift.id, Gift.access_enabled.is_(True))
            .values(access_enabled=False)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(gift)
    logger.info("gift_access_expired", gift_id=str(gift.id))


def _window_closed(gift: Gift, now: datetime) -> bool:
    return gift.expires_at is not None and gift.expires_at <= now


def _check_viewable(
    db: Session, viewer_id: UUID, gift_id: UUID | str, now: datetime | None = None
) -> Gift:
    now = now or datetime.now(UTC)
    sweep_expired_gifts(db, viewer_id, now)

    gift = load_gift(db, gift_id)
    if gift.user_id != viewer_id:
        raise AccessDeniedError("This gift does not belong to you")
    if gift.permanently_deleted:
        raise GoneError()
    if not gift.access_enabled:
        # Disabled by the sweep (or an earlier gate) because the window closed
        if _window_closed(gift, now):
            raise AccessExpiredError()
        raise AccessDisabledError()
    if gift.is_expired(now):
        _expire_access(db, gift)
        raise AccessExpiredError()
    if not gift.is_viewable(now):
        # Access switched on before the song was delivered
        raise AccessDisabledError()
    return gift


def get_owned_gift(
    db: Session, viewer_id: UUID, gift_id: UUID | str, now: datetime | None = None
) -> Gift:
    """Owner detail view of one gift.

    Raises:
        NotFoundError, AccessDeniedError, GoneError, AccessDisabledError,
        AccessExpiredError: see module docstring, steps 3-9.
    """
    return _check_viewable(db, viewer_id, gift_id, now)


def view_gift_with_token(db: Session, viewer_id: UUID, gift_id: UUID | str, token: str) -> Gift:
    """Open a gift through its shared link.

    The token must decode to the caller's own user id. A mismatch is reported
    before the gift is looked up, so the response never reveals whether the
    gift exists.
    """
    try:
        intended_user_id = decode_identity(token)
    except DecodeError as e:
        logger.info("gift_link_invalid", gift_id=str(gift_id), error=str(e))
        raise InvalidLinkError() from e

    if intended_user_id != str(viewer_id):
        logger.info("gift_link_wrong_user", gift_id=str(gift_id))
        raise AccessDeniedError(
            "This gift is not intended for you. It can only be viewed by the "
            "recipient it was created for.",
            intended_for_different_user=True,
        )

    return _check_viewable(db, viewer_id, gift_id)
