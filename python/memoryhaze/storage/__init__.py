"""Storage module for the hosted asset store.

Provides:
- Asset store clients (Cloudinary Admin API, in-memory fake)
- Asset id derivation from delivery URLs
"""

from memoryhaze.storage.client import (
    AssetKind,
    AssetStoreBase,
    AssetStoreError,
    CloudinaryAssetStore,
    FakeAssetStore,
    get_asset_store,
)
from memoryhaze.storage.paths import derive_asset_id, folder_from_asset_id

__all__ = [
    "AssetKind",
    "AssetStoreBase",
    "AssetStoreError",
    "CloudinaryAssetStore",
    "FakeAssetStore",
    "get_asset_store",
    "derive_asset_id",
    "folder_from_asset_id",
]
