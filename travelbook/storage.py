"""
Storage abstraction for Tencent COS (S3-compatible) and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from travelbook.errors import StorageError


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        """Store ``data`` at ``path`` and return its public URL."""
        ...

    def delete(self, path: str) -> None:
        ...

    def path_for_url(self, url: str) -> Optional[str]:
        """Return the object path for a URL this store issued, else None."""
        ...


def _path_under_base(base_url: str, url: str) -> Optional[str]:
    base = urlparse(base_url)
    parsed = urlparse(url)
    if (parsed.scheme, parsed.netloc) != (base.scheme, base.netloc):
        return None
    prefix = base.path.rstrip("/") + "/"
    if not parsed.path.startswith(prefix):
        return None
    path = unquote(parsed.path[len(prefix) :])
    return path or None


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)
    deleted_paths: list[str] = field(default_factory=list)

    def reset(self) -> None:
        self.stored_objects.clear()
        self.deleted_paths.clear()

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        self.stored_objects[path] = bytes(data)
        return f"{self.base_url}/{quote(path)}"

    def delete(self, path: str) -> None:
        self.deleted_paths.append(path)
        if self.stored_objects.pop(path, None) is None:
            raise FileNotFoundError(path)

    def path_for_url(self, url: str) -> Optional[str]:
        return _path_under_base(self.base_url, url)


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )
        if not self.public_base_url:
            endpoint = urlparse(self.endpoint) if self.endpoint else None
            if endpoint and endpoint.netloc:
                self.public_base_url = (
                    f"{endpoint.scheme or 'https'}://{self.bucket}.{endpoint.netloc}"
                )
            else:
                self.public_base_url = f"https://{self.bucket}.s3.amazonaws.com"
        self.public_base_url = self.public_base_url.rstrip("/")

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to store {path}: {exc}") from exc
        return f"{self.public_base_url}/{quote(path)}"

    def delete(self, path: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=path)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc

    def path_for_url(self, url: str) -> Optional[str]:
        return _path_under_base(self.public_base_url, url)
