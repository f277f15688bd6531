"""User bootstrap and admin promotion.

Users are created on first authenticated request. Each new user is assigned a
human-readable public id (``usr-00001``) from a persistent counter. The id is
assigned exactly once and never changes.
"""

from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from memoryhaze.db.models import Counter, User
from memoryhaze.errors import ApiErrorCode, NotFoundError
from memoryhaze.logging import get_logger

logger = get_logger(__name__)

USER_COUNTER = "user_public_id"
PUBLIC_ID_PREFIX = "usr-"
BOOTSTRAP_ATTEMPTS = 3


def format_public_id(seq: int) -> str:
    return f"{PUBLIC_ID_PREFIX}{seq:05d}"


def next_public_id(db: Session) -> str:
    """Bump the user counter and return the new public id.

    Runs inside the caller's transaction; the counter row lock is held until
    the caller commits.
    """
    seq = db.execute(
        update(Counter)
        .where(Counter.name == USER_COUNTER)
        .values(seq=Counter.seq + 1)
        .returning(Counter.seq)
    ).scalar_one_or_none()

    if seq is None:
        # First user ever. A concurrent insert surfaces as IntegrityError on flush.
        db.add(Counter(name=USER_COUNTER, seq=1))
        db.flush()
        seq = 1

    return format_public_id(seq)


def ensure_user(db: Session, user_id: UUID, email: str | None = None) -> User:
    """Ensure the user row exists and return it.

    Race-safe and idempotent. A missing email is back-filled when a later
    token carries one; an existing email is never overwritten.

    Args:
        db: Database session.
        user_id: The user's ID (from JWT sub claim).
        email: Email claim from the token, if any.

    Returns:
        The user.
    """
    for attempt in range(BOOTSTRAP_ATTEMPTS):
        user = db.get(User, user_id)
        if user is not None:
            if email and not user.email:
                user.email = email
                db.commit()
            return user

        try:
            user = User(id=user_id, public_id=next_public_id(db), email=email)
            db.add(user)
            db.commit()
        except IntegrityError:
            # Lost a race on the user row or the counter row; re-check and retry
            db.rollback()
            logger.info("user_bootstrap_conflict", user_id=str(user_id), attempt=attempt + 1)
            continue

        logger.info("user_created", user_id=str(user_id), public_id=user.public_id)
        return user

    logger.error("user_bootstrap_failed", user_id=str(user_id))
    raise RuntimeError(f"Failed to bootstrap user {user_id}")


def promote_admin(db: Session, email_or_public_id: str) -> User:
    """Grant admin rights to a user found by email or public id.

    Raises:
        NotFoundError: If no such user exists.
    """
    key = email_or_public_id.strip()
    user = db.scalars(
        select(User).where(or_(User.email == key, User.public_id == key))
    ).first()
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, f"User not found: {key}")

    if not user.is_admin:
        user.is_admin = True
        db.commit()
        logger.info("user_promoted_to_admin", user_id=str(user.id), public_id=user.public_id)

    return user
