"""Admin routes for the gift request queue.

All routes require an admin viewer (E_ADMIN_REQUIRED otherwise).
Routes are transport-only and call exactly one lifecycle service function.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from memoryhaze.api.deps import get_app_settings, get_asset_store, get_db, get_notifier
from memoryhaze.auth.permissions import require_admin
from memoryhaze.config import Settings
from memoryhaze.db.models import GiftStatus
from memoryhaze.notifications.notifier import GiftNotifier
from memoryhaze.responses import success_response
from memoryhaze.schemas.gift import (
    CompleteGiftRequest,
    GiftOut,
    RejectGiftRequest,
    SetAccessRequest,
)
from memoryhaze.services import gift_lifecycle
from memoryhaze.storage.client import AssetStoreBase

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def _gift_out(gift) -> dict:
    return success_response(GiftOut.model_validate(gift).model_dump(mode="json"))


@router.get("/requests")
def list_gift_requests(
    db: Annotated[Session, Depends(get_db)],
    status: Annotated[GiftStatus | None, Query(description="Filter by status")] = None,
) -> dict:
    """List gift requests, newest first."""
    gifts = gift_lifecycle.list_requests(db, status=status)
    return success_response([GiftOut.model_validate(g).model_dump(mode="json") for g in gifts])


@router.patch("/requests/{gift_id}/verify")
def verify_gift_request(
    gift_id: str,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Accept a pending request."""
    return _gift_out(gift_lifecycle.verify_gift(db, gift_id))


@router.patch("/requests/{gift_id}/reject")
def reject_gift_request(
    gift_id: str,
    db: Annotated[Session, Depends(get_db)],
    asset_store: Annotated[AssetStoreBase, Depends(get_asset_store)],
    body: RejectGiftRequest | None = None,
) -> dict:
    """Reject a pending or verified request and purge its photos."""
    reason = body.reason if body else None
    return _gift_out(gift_lifecycle.reject_gift(db, gift_id, reason, asset_store))


@router.patch("/requests/{gift_id}/complete")
def complete_gift_request(
    gift_id: str,
    body: CompleteGiftRequest,
    db: Annotated[Session, Depends(get_db)],
    notifier: Annotated[GiftNotifier, Depends(get_notifier)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    """Attach the finished song and notify the recipient."""
    gift = gift_lifecycle.complete_gift(
        db,
        gift_id,
        audio=body.audio,
        lyrics=body.lyrics,
        audio_public_id=body.audio_public_id,
        notifier=notifier,
        frontend_url=settings.frontend_url,
    )
    return _gift_out(gift)


@router.patch("/gifts/{gift_id}/access")
def set_gift_access(
    gift_id: str,
    body: SetAccessRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Enable or disable recipient access, optionally restarting the access window."""
    gift = gift_lifecycle.set_access(
        db, gift_id, enabled=body.access_enabled, reset_expiry=body.reset_expiry
    )
    return _gift_out(gift)


@router.delete("/gifts/{gift_id}/permanent")
def delete_gift_permanently(
    gift_id: str,
    db: Annotated[Session, Depends(get_db)],
    asset_store: Annotated[AssetStoreBase, Depends(get_asset_store)],
) -> dict:
    """Tombstone a gift and purge its stored assets. Safe to repeat."""
    return _gift_out(gift_lifecycle.permanent_delete(db, gift_id, asset_store))
