from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings


class StorageWriteError(Exception):
    """Raised when an object could not be durably written."""


class ObjectStorage(ABC):
    @abstractmethod
    def put(self, key: str, source: BinaryIO, *, content_type: str) -> None: ...

    @abstractmethod
    def public_url(self, key: str) -> str: ...


class LocalStorage(ObjectStorage):
    """Filesystem-backed object storage suitable for development.

    When ``base_url`` is set, objects are addressed beneath it; otherwise
    ``public_url`` falls back to a ``file://`` URI on the server.
    """

    def __init__(self, base_path: Path, *, base_url: str | None = None):
        self.base_path = base_path
        self.base_url = base_url.rstrip("/") if base_url else None
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        target = (self.base_path / key).resolve()
        if not target.is_relative_to(self.base_path.resolve()):
            raise ValueError(f"Key escapes storage root: {key}")
        return target

    def put(self, key: str, source: BinaryIO, *, content_type: str) -> None:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                shutil.copyfileobj(source, handle, length=1024 * 1024)
        except OSError as exc:
            target.unlink(missing_ok=True)
            raise StorageWriteError(str(exc)) from exc

    def public_url(self, key: str) -> str:
        target = self._resolve(key)
        if self.base_url is None:
            return target.as_uri()
        return f"{self.base_url}/{target.relative_to(self.base_path.resolve()).as_posix()}"


class S3Storage(ObjectStorage):
    """Amazon S3 (or S3 compatible) object storage."""

    def __init__(self, bucket: str, region: str, *, client: Any | None = None, endpoint_url: str | None = None):
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client("s3", region_name=region, endpoint_url=endpoint_url)

    def put(self, key: str, source: BinaryIO, *, content_type: str) -> None:
        try:
            self.client.upload_fileobj(
                source,
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageWriteError(str(exc)) from exc

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


def _served_url(settings: Settings, base_path: Path) -> str | None:
    """URL of ``base_path`` under the '/assets' static mount, if it lives there."""
    assets_root = Path(settings.assets_root).resolve()
    try:
        relative = base_path.resolve().relative_to(assets_root)
    except ValueError:
        return None
    url = f"{settings.public_base_url.rstrip('/')}/assets"
    return f"{url}/{relative.as_posix()}" if relative.parts else url


def get_storage(settings: Settings) -> ObjectStorage:
    if settings.storage_backend == "local":
        base_path = Path(settings.object_storage_path)
        return LocalStorage(base_path=base_path, base_url=_served_url(settings, base_path))
    if settings.storage_backend == "s3":
        if not settings.s3_bucket:
            raise ValueError("s3 storage backend requires a bucket")
        return S3Storage(settings.s3_bucket, settings.s3_region, endpoint_url=settings.s3_endpoint_url)
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "ObjectStorage",
    "LocalStorage",
    "S3Storage",
    "StorageWriteError",
    "get_storage",
]
