"""
File storage for uploaded documents (presentations, proofs, CVs).

Two backends:
- ``local``: files under ``settings.upload_dir`` served from ``public_files_url``
- ``s3``: objects in ``settings.s3_bucket_name`` via boto3
"""
import asyncio
import base64
import binascii
import re
from pathlib import Path, PurePosixPath
from typing import Optional

import boto3
import structlog
from botocore.exceptions import ClientError

from backend.core.config import settings
from backend.core.exceptions import ValidationError

logger = structlog.get_logger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w-]+=[^;,]+)*);base64,(?P<data>.*)$", re.S)
SAFE_NAME_PATTERN = re.compile(r"[^A-Za-z0-9._-]+")


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """
    Split a ``data:<mime>;base64,<payload>`` URL into bytes and MIME type.

    Raises:
        ValidationError: If the URL is not a base64 data URL.
    """
    match = DATA_URL_PATTERN.match(data_url or "")
    if match is None:
        raise ValidationError("Invalid data URL format.")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid data URL format.")
    return data, match.group("mime") or "application/octet-stream"


def safe_file_name(name: str) -> str:
    """Replace anything outside [A-Za-z0-9._-] with underscores."""
    cleaned = SAFE_NAME_PATTERN.sub("_", name).strip("._")
    return cleaned or "file"


def normalize_key(path: str) -> str:
    """Relative object key; rejects absolute paths and parent references."""
    key = PurePosixPath(path.replace("\\", "/").lstrip("/"))
    if not key.parts or ".." in key.parts:
        raise ValidationError("Invalid file path.")
    return str(key)


class StorageClient:
    """Uploads and deletes files in the configured backend."""

    def __init__(
        self,
        backend: Optional[str] = None,
        root: Optional[str | Path] = None,
        public_url: Optional[str] = None,
        bucket_name: Optional[str] = None,
    ):
        self.backend = (backend or settings.storage_backend).lower()
        if self.backend not in ("local", "s3"):
            raise ValueError(f"Unknown storage backend: {self.backend}")

        self.root = Path(root or settings.upload_dir)
        self.public_url = (public_url or settings.public_files_url).rstrip("/")
        self.bucket_name = bucket_name or settings.s3_bucket_name
        self._s3 = None

    @property
    def s3(self):
        """Lazy-loaded boto3 S3 client."""
        if self._s3 is None:
            self._s3 = boto3.client(
                "s3",
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.aws_region,
            )
        return self._s3

    def url_for(self, key: str) -> str:
        if self.backend == "s3":
            return f"https://{self.bucket_name}.s3.{settings.aws_region}.amazonaws.com/{key}"
        return f"{self.public_url}/{key}"

    def path_from_url(self, url: str) -> Optional[str]:
        """Object key for a URL this client produced, or None for foreign URLs."""
        prefix = self.url_for("")
        if url.startswith(prefix):
            return url[len(prefix):] or None
        return None

    # =========================================================================
    # Backend operations
    # =========================================================================

    def _write_local(self, key: str, data: bytes) -> None:
        target = self.root / key
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def _delete_local(self, key: str) -> bool:
        target = self.root / key
        if not target.exists():
            return False
        target.unlink()
        return True

    def _put_s3(self, key: str, data: bytes, content_type: str) -> None:
        self.s3.put_object(Bucket=self.bucket_name, Key=key, Body=data, ContentType=content_type)

    def _delete_s3(self, key: str) -> bool:
        try:
            self.s3.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return False
            raise
        return True

    # =========================================================================
    # Public API
    # =========================================================================

    async def upload_bytes(self, data: bytes, path: str, content_type: str = "application/octet-stream") -> str:
        """Store ``data`` at ``path`` and return its public URL."""
        key = normalize_key(path)
        if self.backend == "s3":
            await asyncio.to_thread(self._put_s3, key, data, content_type)
        else:
            await asyncio.to_thread(self._write_local, key, data)

        logger.info("file_uploaded", backend=self.backend, key=key, size=len(data))
        return self.url_for(key)

    async def upload_data_url(self, data_url: str, path: str) -> str:
        data, mime = decode_data_url(data_url)
        return await self.upload_bytes(data, path, mime)

    async def delete(self, path_or_url: str) -> bool:
        """Delete a stored file by key or URL. Returns False when nothing was there."""
        key = self.path_from_url(path_or_url) if "://" in path_or_url else path_or_url
        if not key:
            logger.warning("file_delete_skipped_foreign_url", url=path_or_url)
            return False
        key = normalize_key(key)

        if self.backend == "s3":
            deleted = await asyncio.to_thread(self._delete_s3, key)
        else:
            deleted = await asyncio.to_thread(self._delete_local, key)

        logger.info("file_deleted", backend=self.backend, key=key, existed=deleted)
        return deleted


_storage: Optional[StorageClient] = None


def get_storage() -> StorageClient:
    """FastAPI dependency returning the process-wide storage client."""
    global _storage
    if _storage is None:
        _storage = StorageClient()
    return _storage
