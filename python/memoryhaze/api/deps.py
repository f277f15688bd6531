"""FastAPI dependencies for route handlers.

Collaborators (asset store, notifier) are built once in the application
lifespan and read from app.state here, so tests can swap in fakes.
"""

from fastapi import Request

from memoryhaze.config import Settings, get_settings
from memoryhaze.db.session import get_db, get_session_factory
from memoryhaze.notifications.notifier import GiftNotifier
from memoryhaze.storage.client import AssetStoreBase

__all__ = [
    "get_db",
    "get_session_factory",
    "get_app_settings",
    "get_asset_store",
    "get_notifier",
]


def get_app_settings() -> Settings:
    return get_settings()


def get_asset_store(request: Request) -> AssetStoreBase:
    """Get the shared asset store from app state."""
    return request.app.state.asset_store


def get_notifier(request: Request) -> GiftNotifier:
    """Get the shared gift notifier from app state."""
    return request.app.state.notifier
