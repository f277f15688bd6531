"""Current user endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from memoryhaze.auth.middleware import Viewer, get_viewer
from memoryhaze.responses import success_response

router = APIRouter()


@router.get("/me")
async def get_me(viewer: Annotated[Viewer, Depends(get_viewer)]) -> dict:
    """Get current user information.

    Returns:
        Success envelope with user_id, public_id and is_admin.
    """
    return success_response(
        {
            "user_id": str(viewer.user_id),
            "public_id": viewer.public_id,
            "is_admin": viewer.is_admin,
        }
    )
