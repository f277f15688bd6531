"""Asset id utilities.

Gift photos and audio are stored on a hosted media CDN and referenced by
delivery URL. Deletion on the store is keyed by public id, so ids are derived
from those URLs:

    https://res.cloudinary.com/<cloud>/image/upload/v1712345678/MemoryHaze/usr-00001/gift1/photo_1.jpg?_a=x
                                             ^marker  ^version  ^------------- public id ------------^

Rules:
    - Everything up to and including the marker is dropped
    - An optional leading ``v<digits>/`` version segment is dropped
    - Query string and trailing file extension are dropped
    - Inputs without the marker, or that reduce to nothing, yield None
    - Derivation never raises
"""

import re

ASSET_PATH_MARKER = "/upload/"

_VERSION_PREFIX = re.compile(r"^v\d+/")
_EXTENSION_SUFFIX = re.compile(r"\.[^./]+$")


def derive_asset_id(url: str | None) -> str | None:
    """Extract the store public id from an asset delivery URL.

    Returns:
        The public id, or None if the URL doesn't carry one.
    """
    if not isinstance(url, str):
        return None

    index = url.find(ASSET_PATH_MARKER)
    if index == -1:
        return None

    path = url[index + len(ASSET_PATH_MARKER) :]
    path = _VERSION_PREFIX.sub("", path, count=1)
    path = path.split("?", 1)[0]
    path = _EXTENSION_SUFFIX.sub("", path)

    return path or None


def folder_from_asset_id(asset_id: str | None) -> str | None:
    """Return the folder holding an asset, e.g. ``MemoryHaze/usr-00001/gift1``.

    Only ids nested at least three segments deep have a folder; shallower ids
    return None so a bulk prefix delete never targets a top-level folder.
    """
    if not asset_id:
        return None
    parts = asset_id.split("/")
    if len(parts) >= 3:
        return "/".join(parts[:-1])
    return None
