# reflect_app/modules/plant_images.py

"""
Plant artwork lookup.

Images live in object storage under ``<asset root>/<folder>/<stage file>``
where *folder* is the catalog entry's ``storage_folder`` override or the
plant id. Download URLs come from the Firebase Storage REST metadata
endpoint; any failure along the way yields the stage's placeholder glyph
instead of an exception.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from reflect_app.config.settings import settings
from reflect_app.modules.growth_stages import get_stage_filename, get_stage_placeholder

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class StorageError(Exception):
    """Object storage answered but gave no usable download URL."""


class FirebaseStorageClient:
    """Minimal read-only client for the Firebase Storage REST API."""

    def __init__(
        self,
        bucket: str,
        base_url: str = settings.storage_base_url,
        timeout: float = settings.storage_timeout,
        session: Optional[requests.Session] = None,
    ):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _object_url(self, path: str) -> str:
        return f"{self.base_url}/{self.bucket}/o/{quote(path, safe='')}"

    def download_url(self, path: str) -> str:
        """Signed download URL for *path*; raises on any storage or network error."""
        object_url = self._object_url(path)
        response = self.session.get(object_url, timeout=self.timeout)
        response.raise_for_status()
        metadata = response.json()
        if not isinstance(metadata, dict):
            raise StorageError(f"Unexpected metadata for '{path}': {type(metadata).__name__}")
        tokens = metadata.get("downloadTokens") or ""
        if not isinstance(tokens, str):
            raise StorageError(f"Unexpected downloadTokens for '{path}': {tokens!r}")
        token = tokens.split(",")[0].strip()
        if not token:
            raise StorageError(f"No download token published for '{path}'.")
        return f"{object_url}?alt=media&token={token}"


def default_storage_client() -> Optional[FirebaseStorageClient]:
    if not settings.storage_bucket:
        return None
    return FirebaseStorageClient(settings.storage_bucket)


def plant_image_path(
    plant_id: str,
    stage: int,
    storage_folder: Optional[str] = None,
    asset_root: str = settings.storage_asset_root,
) -> str:
    folder = (storage_folder or plant_id).strip("/")
    return f"{asset_root.strip('/')}/{folder}/{get_stage_filename(stage)}"


def resolve_plant_image(
    plant_id: Optional[str],
    stage: int,
    storage_folder: Optional[str] = None,
    storage: Optional[FirebaseStorageClient] = None,
) -> Dict[str, Any]:
    """
    Returns ``{"url", "path", "placeholder", "is_placeholder"}``. ``url`` is
    None whenever the image could not be resolved.
    """
    result = {
        "url": None,
        "path": None,
        "placeholder": get_stage_placeholder(stage),
        "is_placeholder": True,
    }
    if not plant_id:
        return result

    path = plant_image_path(plant_id, stage, storage_folder)
    result["path"] = path
    if storage is None:
        logger.debug("No object storage configured; placeholder for %s.", path)
        return result

    try:
        result["url"] = storage.download_url(path)
        result["is_placeholder"] = False
    except (requests.RequestException, StorageError, ValueError) as e:
        logger.warning("Could not resolve image %s: %s. Falling back to placeholder.", path, e)
    return result
