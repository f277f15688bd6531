"""Authorization checks for admin-only routes."""

from typing import Annotated

from fastapi import Depends

from memoryhaze.auth.middleware import Viewer, get_viewer
from memoryhaze.errors import ApiErrorCode, ForbiddenError


def require_admin(viewer: Annotated[Viewer, Depends(get_viewer)]) -> Viewer:
    """FastAPI dependency that admits only admin viewers.

    Raises:
        ForbiddenError(E_ADMIN_REQUIRED): Viewer is not an admin.
    """
    if not viewer.is_admin:
        raise ForbiddenError(ApiErrorCode.E_ADMIN_REQUIRED, "Admin access required")
    return viewer
