"""Gift routes for requesters and recipients.

Routes are transport-only:
- Extract the viewer from request.state
- Call exactly one service function
- Return success_response(...) or raise ApiError

Every read runs the lazy expiry sweep for the viewer inside the service.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from memoryhaze.api.deps import get_db
from memoryhaze.auth.middleware import Viewer, get_viewer
from memoryhaze.responses import success_response
from memoryhaze.schemas.gift import (
    GiftCreatedOut,
    GiftOut,
    GiftRequestCreate,
    GiftSummaryOut,
    GiftViewOut,
)
from memoryhaze.services import gift_access, gift_lifecycle

router = APIRouter()


@router.post("/gifts/request", status_code=201)
def request_gift(
    body: GiftRequestCreate,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Submit a new gift request. Starts in status ``pending``."""
    gift = gift_lifecycle.create_gift(db, viewer.user_id, body)
    return success_response(GiftCreatedOut.model_validate(gift).model_dump(mode="json"))


@router.get("/gifts")
def list_my_gifts(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the viewer's gifts, newest first."""
    gifts = gift_access.list_gifts(db, viewer.user_id)
    return success_response(
        [GiftSummaryOut.model_validate(g).model_dump(mode="json") for g in gifts]
    )


@router.get("/gifts/{gift_id}/{token}")
def view_shared_gift(
    gift_id: str,
    token: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Open a gift through the secure link from the notification email."""
    gift = gift_access.view_gift_with_token(db, viewer.user_id, gift_id, token)
    view = GiftViewOut(gift=GiftOut.model_validate(gift))
    return success_response(view.model_dump(mode="json"))


@router.get("/gifts/{gift_id}")
def get_my_gift(
    gift_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get one of the viewer's own gifts."""
    gift = gift_access.get_owned_gift(db, viewer.user_id, gift_id)
    return success_response(GiftOut.model_validate(gift).model_dump(mode="json"))
