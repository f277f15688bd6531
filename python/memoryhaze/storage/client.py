"""Hosted asset store client abstraction.

Provides a clean interface for deleting gift assets (photos, audio) from the
hosted media store:
- Delete a single asset by public id
- Delete every asset under a folder prefix

Uploads happen client-side before a gift request is submitted, so the backend
only ever deletes. Both operations raise AssetStoreError on failure; callers
decide whether a failure is fatal.
"""

from abc import ABC, abstractmethod
from enum import Enum

import httpx

from memoryhaze.config import Settings
from memoryhaze.logging import get_logger

logger = get_logger(__name__)


class AssetKind(str, Enum):
    """Kinds of stored gift assets."""

    image = "image"
    audio = "audio"


class AssetStoreError(Exception):
    """Asset store operation error."""

    def __init__(self, message: str, code: str = "E_ASSET_STORE_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class AssetStoreBase(ABC):
    """Abstract base class for asset store implementations."""

    @abstractmethod
    def delete_by_id(self, asset_id: str, kind: AssetKind) -> None:
        """Delete one asset.

        Args:
            asset_id: Store public id (see memoryhaze.storage.paths.derive_asset_id).
            kind: Asset kind.

        Raises:
            AssetStoreError: If the store reports a failure. An asset that
                doesn't exist is not a failure.
        """
        ...

    @abstractmethod
    def delete_by_prefix(self, prefix: str, kind: AssetKind) -> None:
        """Delete every asset of ``kind`` whose public id starts with ``prefix``.

        Raises:
            AssetStoreError: If the store reports a failure.
        """
        ...


class CloudinaryAssetStore(AssetStoreBase):
    """Production client for the Cloudinary Admin API.

    Uses httpx with HTTP basic auth (API key / secret). Audio is stored under
    Cloudinary's ``video`` resource type.
    """

    _RESOURCE_TYPES = {
        AssetKind.image: "image",
        AssetKind.audio: "video",
    }

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        base_url: str = "https://api.cloudinary.com/v1_1",
        timeout: float = 30.0,
    ):
        self._cloud_name = cloud_name
        self._auth = httpx.BasicAuth(api_key, api_secret)
        self._base_url = f"{base_url.rstrip('/')}/{cloud_name}"
        self._timeout = timeout

    def _resources_url(self, kind: AssetKind) -> str:
        resource_type = self._RESOURCE_TYPES[AssetKind(kind)]
        return f"{self._base_url}/resources/{resource_type}/upload"

    def _delete(self, kind: AssetKind, params: dict) -> dict:
        url = self._resources_url(kind)
        try:
            with httpx.Client(auth=self._auth, timeout=self._timeout) as client:
                response = client.delete(url, params={**params, "invalidate": "true"})
        except httpx.HTTPError as e:
            raise AssetStoreError(
                f"Asset store request failed: {type(e).__name__}",
                code="E_ASSET_STORE_UNAVAILABLE",
            ) from e

        if response.status_code == 404:
            return {}

        if response.status_code != 200:
            raise AssetStoreError(
                f"Asset store delete failed: {response.status_code} {response.text}",
                code="E_ASSET_DELETE_FAILED",
            )

        try:
            return response.json()
        except ValueError:
            return {}

    def delete_by_id(self, asset_id: str, kind: AssetKind) -> None:
        """Delete one asset via DELETE /resources/{type}/upload?public_ids[]=..."""
        data = self._delete(kind, {"public_ids[]": asset_id})

        # Cloudinary answers 200 with a per-id outcome: "deleted" or "not_found"
        outcome = (data.get("deleted") or {}).get(asset_id)
        if outcome not in (None, "deleted", "not_found"):
            raise AssetStoreError(
                f"Asset store refused to delete {asset_id}: {outcome}",
                code="E_ASSET_DELETE_FAILED",
            )

    def delete_by_prefix(self, prefix: str, kind: AssetKind) -> None:
        """Delete a folder via DELETE /resources/{type}/upload?prefix=..."""
        if not prefix:
            raise AssetStoreError("No prefix provided", code="E_ASSET_PREFIX_MISSING")
        self._delete(kind, {"prefix": prefix})


class FakeAssetStore(AssetStoreBase):
    """Fake asset store for testing without a hosted store.

    Holds asset ids in memory and records every delete call. Specific ids or
    prefixes can be made to fail.
    """

    def __init__(self):
        self._assets: dict[AssetKind, set[str]] = {kind: set() for kind in AssetKind}
        self.deleted_ids: list[tuple[str, AssetKind]] = []
        self.deleted_prefixes: list[tuple[str, AssetKind]] = []
        self._failing: set[str] = set()

    def delete_by_id(self, asset_id: str, kind: AssetKind) -> None:
        kind = AssetKind(kind)
        if asset_id in self._failing:
            raise AssetStoreError(f"Simulated failure deleting {asset_id}")
        self._assets[kind].discard(asset_id)
        self.deleted_ids.append((asset_id, kind))

    def delete_by_prefix(self, prefix: str, kind: AssetKind) -> None:
        kind = AssetKind(kind)
        if prefix in self._failing:
            raise AssetStoreError(f"Simulated failure deleting prefix {prefix}")
        self._assets[kind] = {a for a in self._assets[kind] if not a.startswith(prefix)}
        self.deleted_prefixes.append((prefix, kind))

    # Test helper methods

    def put_asset(self, asset_id: str, kind: AssetKind = AssetKind.image) -> None:
        """Register a stored asset (test helper)."""
        self._assets[AssetKind(kind)].add(asset_id)

    def has_asset(self, asset_id: str, kind: AssetKind = AssetKind.image) -> bool:
        return asset_id in self._assets[AssetKind(kind)]

    def fail_on(self, *asset_ids_or_prefixes: str) -> None:
        """Make deletes of these ids/prefixes raise AssetStoreError (test helper)."""
        self._failing.update(asset_ids_or_prefixes)

    def clear(self) -> None:
        for kind in AssetKind:
            self._assets[kind].clear()
        self.deleted_ids.clear()
        self.deleted_prefixes.clear()
        self._failing.clear()


def get_asset_store(settings: Settings) -> AssetStoreBase:
    """Get the configured asset store.

    Returns:
        CloudinaryAssetStore if all CLOUDINARY_* settings are present,
        FakeAssetStore otherwise.
    """
    if settings.cloudinary_configured:
        return CloudinaryAssetStore(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )

    logger.warning("asset_store_not_configured", detail="using in-memory fake asset store")
    return FakeAssetStore()
