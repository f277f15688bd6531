"""Business logic services.

This module contains service-layer functions that implement business logic.
Services are called by route handlers and orchestrate database operations.
"""

from memoryhaze.services.bootstrap import ensure_user, promote_admin
from memoryhaze.services.gift_access import (
    get_owned_gift,
    list_gifts,
    sweep_expired_gifts,
    view_gift_with_token,
)
from memoryhaze.services.gift_lifecycle import (
    complete_gift,
    create_gift,
    list_requests,
    permanent_delete,
    reject_gift,
    set_access,
    verify_gift,
)

__all__ = [
    "ensure_user",
    "promote_admin",
    "create_gift",
    "verify_gift",
    "reject_gift",
    "complete_gift",
    "set_access",
    "permanent_delete",
    "list_requests",
    "sweep_expired_gifts",
    "list_gifts",
    "get_owned_gift",
    "view_gift_with_token",
]
