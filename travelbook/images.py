"""
Photo lifecycle: upload to object storage and best-effort removal.

Removal never raises. A photo that cannot be deleted is logged and left
behind; orphaned objects are preferred over failing the user's request.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import re
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlparse

from travelbook.errors import StorageError, UploadError, ValidationError
from travelbook.storage import StorageClient

logger = logging.getLogger(__name__)

LOCAL_ASSET_PREFIX = "uploads"
_SAFE_EXTENSION = re.compile(r"\.[a-z0-9]{1,10}")


class ImageManager:
    def __init__(
        self,
        storage: StorageClient,
        *,
        folder: str = "travel_book",
        uploads_dir: str = "uploads",
        placeholder_url: Optional[str] = None,
    ):
        self.storage = storage
        self.folder = folder.strip("/")
        self.uploads_dir = Path(uploads_dir)
        self.placeholder_url = placeholder_url

    def _object_path(self, filename: Optional[str], content_type: Optional[str]) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        if not _SAFE_EXTENSION.fullmatch(ext):
            ext = ""
        if not ext and content_type:
            ext = mimetypes.guess_extension(content_type) or ""
        return f"{self.folder}/{uuid.uuid4().hex}{ext}"

    def upload(
        self,
        data: bytes,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """Upload ``data`` and return a public URL for it."""
        if not data:
            raise ValidationError("No image uploaded")
        path = self._object_path(filename, content_type)
        try:
            url = self.storage.upload_bytes(
                path, data, content_type or "application/octet-stream"
            )
        except (StorageError, OSError) as exc:
            logger.exception("Image upload failed for %s", path)
            raise UploadError(f"Image upload failed: {exc}") from exc
        logger.info("Uploaded image %s (%d bytes)", path, len(data))
        return url

    def _local_asset_path(self, url: str) -> Optional[Path]:
        parts = PurePosixPath(unquote(urlparse(url).path)).parts
        if len(parts) < 2 or parts[-2] != LOCAL_ASSET_PREFIX or parts[-1] == "..":
            return None
        # Only the basename is trusted, so a crafted URL cannot leave the directory.
        return self.uploads_dir / parts[-1]

    def delete(self, url: Optional[str]) -> bool:
        """Remove the image behind ``url``. Returns True when something was deleted."""
        if not url or url == self.placeholder_url:
            return False

        path = self.storage.path_for_url(url)
        if path is not None:
            try:
                self.storage.delete(path)
            except (StorageError, OSError):
                logger.exception("Failed to delete remote image %s", path)
                return False
            logger.info("Deleted remote image %s", path)
            return True

        local_path = self._local_asset_path(url)
        if local_path is None:
            logger.info("Image %s is not managed here; nothing to delete", url)
            return False
        try:
            local_path.unlink()
        except OSError:
            logger.warning("Failed to delete image file %s", local_path, exc_info=True)
            return False
        logger.info("Deleted local image %s", local_path)
        return True
