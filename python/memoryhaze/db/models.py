"""SQLAlchemy ORM models for MemoryHaze.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are kept portable (PostgreSQL in deployment, SQLite in tests):
enums are stored as constrained strings and list fields as JSON.
"""

from datetime import UTC, date, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy import Uuid as SAUuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utcnow() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamp on every backend.

    SQLite has no timezone support, so values are written as naive UTC there
    and re-tagged with UTC on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


# =============================================================================
# Enums
# =============================================================================


class GiftStatus(str, PyEnum):
    """Gift request lifecycle states.

    States:
        pending: Submitted by the requester, awaiting admin review
        verified: Accepted by an admin, song in production
        completed: Audio and lyrics attached, recipient may view
        rejected: Declined by an admin; assets purged
    """

    pending = "pending"
    verified = "verified"
    completed = "completed"
    rejected = "rejected"


class Occasion(str, PyEnum):
    birthday = "birthday"
    anniversary = "anniversary"
    valentines = "valentines"


class Plan(str, PyEnum):
    """Subscription tier; decides how long a completed gift stays viewable."""

    momentum = "momentum"
    everlasting = "everlasting"


class TemplateId(str, PyEnum):
    minimalist_love = "minimalist-love"
    grand_anniversary = "grand-anniversary"
    birthday_celebration = "birthday-celebration"
    romantic_evening = "romantic-evening"


def _enum_column(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User account model.

    ``id`` matches the Supabase auth user ID (sub claim). ``public_id`` is the
    sequential human-readable identifier (usr-00001) assigned once at first login.
    """

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("public_id LIKE 'usr-%'", name="ck_users_public_id_format"),)

    id: Mapped[UUID] = mapped_column(SAUuid, primary_key=True)
    public_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    gifts: Mapped[list["Gift"]] = relationship("Gift", back_populates="owner")


class Counter(Base):
    """Named monotonic sequence (used for user public ids)."""

    __tablename__ = "counters"
    __table_args__ = (CheckConstraint("seq >= 0", name="ck_counters_seq_non_negative"),)

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Gift(Base):
    """One personalized gift request and its lifecycle state.

    Derived fields (template_id, memory, expires_at, *_public_id) are filled by
    memoryhaze.services.gift_fields.normalize_gift_fields at every write.
    """

    __tablename__ = "gifts"
    __table_args__ = (
        Index("ix_gifts_user_id_created_at", "user_id", "created_at"),
        Index("ix_gifts_status", "status"),
        CheckConstraint(
            "status IN ('pending', 'verified', 'completed', 'rejected')",
            name="ck_gifts_status",
        ),
        CheckConstraint(
            "occasion IS NULL OR occasion IN ('birthday', 'anniversary', 'valentines')",
            name="ck_gifts_occasion",
        ),
        CheckConstraint(
            "memory IS NULL OR memory IN ('birthday', 'anniversary', 'valentines')",
            name="ck_gifts_memory",
        ),
        CheckConstraint(
            "plan IS NULL OR plan IN ('momentum', 'everlasting')",
            name="ck_gifts_plan",
        ),
        CheckConstraint(
            "template_id IS NULL OR template_id IN ('minimalist-love', 'grand-anniversary', "
            "'birthday-celebration', 'romantic-evening')",
            name="ck_gifts_template_id",
        ),
        # A tombstoned gift never has access
        CheckConstraint(
            "NOT (permanently_deleted AND access_enabled)",
            name="ck_gifts_tombstone_no_access",
        ),
    )

    id: Mapped[UUID] = mapped_column(SAUuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        SAUuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Submission fields
    recipient_name: Mapped[str] = mapped_column(Text, nullable=False)
    occasion: Mapped[Occasion | None] = mapped_column(
        _enum_column(Occasion, "gift_occasion"), nullable=True
    )
    occasion_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    scenarios: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    song_genre: Mapped[str] = mapped_column(Text, default="", nullable=False)
    photos: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    photo_public_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    plan: Mapped[Plan | None] = mapped_column(_enum_column(Plan, "gift_plan"), nullable=True)
    message: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Legacy / derived
    memory: Mapped[Occasion | None] = mapped_column(
        _enum_column(Occasion, "gift_memory"), nullable=True
    )
    template_id: Mapped[TemplateId | None] = mapped_column(
        _enum_column(TemplateId, "gift_template"), nullable=True
    )

    # Completion fields
    audio: Mapped[str | None] = mapped_column(Text, nullable=True)
    audio_public_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    lyrics: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Workflow fields
    status: Mapped[GiftStatus] = mapped_column(
        _enum_column(GiftStatus, "gift_status"), default=GiftStatus.pending, nullable=False
    )
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    access_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    permanently_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    owner: Mapped[User] = relationship("User", back_populates="gifts")

    def is_expired(self, now: datetime | None = None) -> bool:
        """True iff expires_at is set and strictly in the past."""
        if self.expires_at is None:
            return False
        return self.expires_at < (now or utcnow())

    def is_viewable(self, now: datetime | None = None) -> bool:
        return (
            self.status == GiftStatus.completed
            and self.access_enabled
            and not self.permanently_deleted
            and not self.is_expired(now)
        )
