"""Gift-related Pydantic schemas.

Contains request and response models for gift and admin endpoints.
Request bodies are fully validated here, before they reach the lifecycle
services.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from memoryhaze.db.models import GiftStatus, Occasion, Plan, TemplateId

MIN_PHOTOS = 1
MAX_PHOTOS = 4
REQUIRED_SCENARIOS = 3
MIN_SCENARIO_LENGTH = 150

__all__ = [
    "GiftRequestCreate",
    "CompleteGiftRequest",
    "RejectGiftRequest",
    "SetAccessRequest",
    "GiftOut",
    "GiftSummaryOut",
    "GiftCreatedOut",
    "GiftViewOut",
]

# =============================================================================
# Request Schemas
# =============================================================================


class GiftRequestCreate(BaseModel):
    """Request body for submitting a gift request."""

    recipient_name: str = Field(..., description="Name of the person receiving the gift")
    occasion: Occasion
    occasion_date: date
    scenarios: list[str] = Field(
        ...,
        description=f"At least {REQUIRED_SCENARIOS} briefs; only the first {REQUIRED_SCENARIOS} are kept",
    )
    song_genre: str
    photos: list[str] = Field(..., description="Delivery URLs of 1-4 uploaded photos")
    photo_public_ids: list[str] | None = Field(default_factory=list)
    plan: Plan
    message: str | None = ""

    @field_validator("recipient_name", "song_genre")
    @classmethod
    def required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("photo_public_ids", mode="before")
    @classmethod
    def default_public_ids(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("message", mode="before")
    @classmethod
    def default_message(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("message")
    @classmethod
    def strip_message(cls, value: str) -> str:
        return value.strip()

    @field_validator("occasion_date", mode="before")
    @classmethod
    def parse_occasion_date(cls, value: object) -> object:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                return date.fromisoformat(text)
            except ValueError:
                pass
            try:
                return datetime.fromisoformat(text).date()
            except ValueError:
                pass
        raise ValueError("Invalid occasion date")

    @field_validator("photos")
    @classmethod
    def photo_count(cls, value: list[str]) -> list[str]:
        if len(value) < MIN_PHOTOS:
            raise ValueError("At least one photo is required")
        if len(value) > MAX_PHOTOS:
            raise ValueError(f"Maximum {MAX_PHOTOS} photos allowed")
        return value

    @field_validator("scenarios")
    @classmethod
    def scenario_briefs(cls, value: list[str]) -> list[str]:
        if len(value) < REQUIRED_SCENARIOS:
            raise ValueError(f"All {REQUIRED_SCENARIOS} scenarios are required")
        trimmed = [s.strip() for s in value]
        for i, scenario in enumerate(trimmed, start=1):
            if len(scenario) < MIN_SCENARIO_LENGTH:
                raise ValueError(
                    f"Scenario {i} must be at least {MIN_SCENARIO_LENGTH} characters long"
                )
        return trimmed[:REQUIRED_SCENARIOS]


class CompleteGiftRequest(BaseModel):
    """Request body for completing a verified gift.

    Content checks (non-empty audio and lyrics) happen in the lifecycle
    service, after the status precondition.
    """

    audio: str = ""
    audio_public_id: str | None = None
    lyrics: str = ""


class RejectGiftRequest(BaseModel):
    reason: str | None = None


class SetAccessRequest(BaseModel):
    """Request body for enabling or disabling recipient access."""

    access_enabled: bool
    reset_expiry: bool = False


# =============================================================================
# Response Schemas
# =============================================================================


class GiftOut(BaseModel):
    """Response schema for a full gift record."""

    id: UUID
    user_id: UUID
    recipient_name: str
    occasion: Occasion | None
    memory: Occasion | None
    template_id: TemplateId | None
    occasion_date: date | None
    scenarios: list[str]
    song_genre: str
    photos: list[str]
    photo_public_ids: list[str]
    plan: Plan | None
    message: str
    audio: str | None
    audio_public_id: str | None
    lyrics: str
    status: GiftStatus
    submitted_at: datetime | None
    verified_at: datetime | None
    completed_at: datetime | None
    rejected_at: datetime | None
    rejection_reason: str | None
    assigned_at: datetime | None
    expires_at: datetime | None
    access_enabled: bool
    permanently_deleted: bool
    deleted_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GiftSummaryOut(BaseModel):
    """Response schema for an entry in the owner's gift list."""

    id: UUID
    template_id: TemplateId | None
    recipient_name: str
    occasion: Occasion | None
    occasion_date: date | None
    plan: Plan | None
    status: GiftStatus
    submitted_at: datetime | None
    completed_at: datetime | None
    expires_at: datetime | None
    access_enabled: bool
    permanently_deleted: bool
    deleted_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class GiftCreatedOut(BaseModel):
    id: UUID
    recipient_name: str
    occasion: Occasion | None
    occasion_date: date | None
    status: GiftStatus
    submitted_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class GiftViewOut(BaseModel):
    """Response schema for a gift opened through its shared link."""

    gift: GiftOut
    validated: bool = True
