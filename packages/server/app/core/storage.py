"""
Brand-isolated file storage.

Every object lives at ``{brand_id}/{category}/{filename}`` inside one of the
fixed buckets, so a brand id is always the first path segment and one brand
can never address another brand's files.
"""

from __future__ import annotations

import asyncio
import secrets
import time
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Optional

import boto3
import structlog
from botocore.client import Config
from botocore.exceptions import ClientError

from app.core.config import get_settings
from app.core.errors import FILE_TOO_LARGE, INVALID_FILE_TYPE, ApiError

log = structlog.get_logger()

BUCKETS: frozenset[str] = frozenset({
    "brand-documents",
    "brand-images",
    "brand-assets",
    "training-data",
    "generated-content",
})

CATEGORIES: frozenset[str] = frozenset({
    "documents",
    "images",
    "logos",
    "fonts",
    "training",
    "generated",
    "exports",
    "temp",
})

PUBLIC_BUCKETS: frozenset[str] = frozenset({"brand-images"})

DEFAULT_MAX_SIZE_MB = 50

GUIDELINE_DOCUMENT_TYPES: frozenset[str] = frozenset({
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "text/markdown",
})


# ---------------------------------------------------------------------------
# Path convention
# ---------------------------------------------------------------------------

def build_file_path(brand_id: uuid.UUID | str, category: str, filename: str) -> str:
    """Return ``{brand_id}/{category}/{filename}``.

    Raises ValueError on an unknown category or a filename that would escape
    its folder.
    """
    if category not in CATEGORIES:
        raise ValueError(f"Unknown storage category: {category}")
    if not filename or "/" in filename or "\\" in filename or filename in (".", ".."):
        raise ValueError(f"Invalid file name: {filename!r}")
    return f"{brand_id}/{category}/{filename}"


def parse_file_path(path: str) -> tuple[str, str, str]:
    """Split a storage path into (brand_id, category, filename)."""
    parts = path.split("/")
    if len(parts) != 3 or parts[1] not in CATEGORIES or not all(parts):
        raise ValueError(f"Not a brand storage path: {path!r}")
    return parts[0], parts[1], parts[2]


def generate_file_name(original_name: str) -> str:
    """Collision-resistant name that keeps the original extension."""
    suffix = PurePosixPath(original_name).suffix.lower()
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{suffix}"


def validate_file(
    filename: str,
    content_type: Optional[str],
    size: int,
    *,
    max_size_mb: int = DEFAULT_MAX_SIZE_MB,
    allowed_types: Optional[frozenset[str] | set[str]] = None,
) -> None:
    """Raise ApiError if the file is too large or of a disallowed type."""
    max_size_bytes = max_size_mb * 1024 * 1024
    if size > max_size_bytes:
        raise ApiError(
            status_code=413,
            code=FILE_TOO_LARGE,
            message=f"File size exceeds {max_size_mb}MB",
            details={"filename": filename, "size": size, "max_size_mb": max_size_mb},
        )
    if allowed_types is not None and content_type not in allowed_types:
        raise ApiError(
            status_code=400,
            code=INVALID_FILE_TYPE,
            message=f"File type {content_type} not allowed",
            details={"filename": filename, "allowed_types": sorted(allowed_types)},
        )


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

@dataclass
class StoredFile:
    bucket: str
    path: str
    size: int
    url: Optional[str] = None


class StorageBackend:
    """Common surface of the storage backends. Paths are always brand-prefixed."""

    public_base_url: Optional[str] = None

    @staticmethod
    def _check(bucket: str, path: Optional[str] = None) -> None:
        if bucket not in BUCKETS:
            raise ValueError(f"Unknown storage bucket: {bucket}")
        if path is not None:
            parse_file_path(path)

    @staticmethod
    def _prefix(brand_id: uuid.UUID | str, category: Optional[str]) -> str:
        if category is None:
            return f"{brand_id}/"
        if category not in CATEGORIES:
            raise ValueError(f"Unknown storage category: {category}")
        return f"{brand_id}/{category}/"

    def public_url(self, bucket: str, path: str) -> Optional[str]:
        if bucket not in PUBLIC_BUCKETS or not self.public_base_url:
            return None
        return f"{self.public_base_url.rstrip('/')}/{bucket}/{path}"

    async def save(self, bucket: str, path: str, data: bytes, *, upsert: bool = False,
                   content_type: Optional[str] = None) -> StoredFile:
        raise NotImplementedError

    async def read(self, bucket: str, path: str) -> bytes:
        raise NotImplementedError

    async def delete(self, bucket: str, path: str) -> bool:
        raise NotImplementedError

    async def list(
        self, bucket: str, brand_id: uuid.UUID | str, category: Optional[str] = None
    ) -> list[StoredFile]:
        raise NotImplementedError

    async def usage(self, brand_id: uuid.UUID | str) -> tuple[int, int]:
        """Total (size_bytes, file_count) for a brand across all buckets."""
        total_size = 0
        total_files = 0
        for bucket in sorted(BUCKETS):
            for stored in await self.list(bucket, brand_id):
                total_size += stored.size
                total_files += 1
        return total_size, total_files


class S3Storage(StorageBackend):
    """S3-compatible object store (AWS S3, Cloudflare R2, MinIO).

    Each logical bucket maps to ``{bucket_prefix}{bucket}``; object keys are the
    brand storage paths unchanged.
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key_id: str,
        secret_access_key: str,
        *,
        region: str = "auto",
        bucket_prefix: str = "",
        public_base_url: Optional[str] = None,
        client=None,
    ):
        self.bucket_prefix = bucket_prefix
        self.public_base_url = public_base_url or None
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
            region_name=region,
        )

    def bucket_name(self, bucket: str) -> str:
        return f"{self.bucket_prefix}{bucket}"

    @staticmethod
    def _is_missing(exc: ClientError) -> bool:
        return exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound")

    async def exists(self, bucket: str, path: str) -> bool:
        self._check(bucket, path)
        try:
            await asyncio.to_thread(
                self._client.head_object, Bucket=self.bucket_name(bucket), Key=path
            )
        except ClientError as exc:
            if self._is_missing(exc):
                return False
            raise
        return True

    async def save(self, bucket: str, path: str, data: bytes, *, upsert: bool = False,
                   content_type: Optional[str] = None) -> StoredFile:
        self._check(bucket, path)
        if not upsert and await self.exists(bucket, path):
            raise FileExistsError(path)
        extra = {"ContentType": content_type} if content_type else {}
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket_name(bucket),
                Key=path,
                Body=data,
                **extra,
            )
        except ClientError as exc:
            log.error("storage.save_failed", bucket=bucket, path=path, error=str(exc))
            raise
        log.info("storage.saved", bucket=bucket, path=path, size=len(data), backend="s3")
        return StoredFile(bucket=bucket, path=path, size=len(data), url=self.public_url(bucket, path))

    async def read(self, bucket: str, path: str) -> bytes:
        self._check(bucket, path)
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self.bucket_name(bucket), Key=path
            )
        except ClientError as exc:
            if self._is_missing(exc):
                raise FileNotFoundError(path) from exc
            raise
        return await asyncio.to_thread(response["Body"].read)

    async def delete(self, bucket: str, path: str) -> bool:
        # S3 deletes are idempotent, so existence is checked first to report it.
        if not await self.exists(bucket, path):
            return False
        await asyncio.to_thread(
            self._client.delete_object, Bucket=self.bucket_name(bucket), Key=path
        )
        log.info("storage.deleted", bucket=bucket, path=path, backend="s3")
        return True

    def _list_objects(self, bucket: str, prefix: str) -> list[dict]:
        paginator = self._client.get_paginator("list_objects_v2")
        objects: list[dict] = []
        for page in paginator.paginate(Bucket=self.bucket_name(bucket), Prefix=prefix):
            objects.extend(page.get("Contents", []))
        return objects

    async def list(
        self, bucket: str, brand_id: uuid.UUID | str, category: Optional[str] = None
    ) -> list[StoredFile]:
        self._check(bucket)
        objects = await asyncio.to_thread(
            self._list_objects, bucket, self._prefix(brand_id, category)
        )
        objects.sort(key=lambda o: o["LastModified"], reverse=True)
        return [
            StoredFile(
                bucket=bucket,
                path=o["Key"],
                size=o["Size"],
                url=self.public_url(bucket, o["Key"]),
            )
            for o in objects
        ]


class LocalStorage(StorageBackend):
    """Filesystem store rooted at ``settings.storage_root``, for development and tests."""

    def __init__(self, root: str | Path | None = None, public_base_url: str | None = None):
        settings = get_settings()
        self.root = Path(root or settings.storage_root).resolve()
        self.public_base_url = (
            public_base_url
            or settings.storage_public_base_url
            or f"{settings.app_url.rstrip('/')}/storage"
        )

    def _resolve(self, bucket: str, path: str) -> Path:
        self._check(bucket, path)
        target = (self.root / bucket / path).resolve()
        if self.root not in target.parents:
            raise ValueError(f"Path escapes storage root: {path!r}")
        return target

    async def save(self, bucket: str, path: str, data: bytes, *, upsert: bool = False,
                   content_type: Optional[str] = None) -> StoredFile:
        target = self._resolve(bucket, path)
        if target.exists() and not upsert:
            raise FileExistsError(path)
        await asyncio.to_thread(self._write, target, data)
        log.info("storage.saved", bucket=bucket, path=path, size=len(data), backend="local")
        return StoredFile(bucket=bucket, path=path, size=len(data), url=self.public_url(bucket, path))

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def read(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        return await asyncio.to_thread(target.read_bytes)

    async def delete(self, bucket: str, path: str) -> bool:
        target = self._resolve(bucket, path)
        if not target.exists():
            return False
        await asyncio.to_thread(target.unlink)
        log.info("storage.deleted", bucket=bucket, path=path, backend="local")
        return True

    async def list(
        self, bucket: str, brand_id: uuid.UUID | str, category: Optional[str] = None
    ) -> list[StoredFile]:
        self._check(bucket)
        base = self.root / bucket / self._prefix(brand_id, category)
        if not base.exists():
            return []
        files = [p for p in base.rglob("*") if p.is_file()]
        files.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return [
            StoredFile(
                bucket=bucket,
                path=p.relative_to(self.root / bucket).as_posix(),
                size=p.stat().st_size,
            )
            for p in files
        ]


@lru_cache
def _s3_storage() -> S3Storage:
    settings = get_settings()
    return S3Storage(
        settings.s3_endpoint_url,
        settings.s3_access_key_id,
        settings.s3_secret_access_key,
        region=settings.s3_region,
        bucket_prefix=settings.s3_bucket_prefix,
        public_base_url=settings.storage_public_base_url,
    )


def get_storage() -> StorageBackend:
    """FastAPI dependency for the configured storage backend."""
    if get_settings().storage_backend == "s3":
        return _s3_storage()
    return LocalStorage()
