"""Storage backends for uploaded report attachments: local disk and Supabase Storage."""

import asyncio
import secrets
import time
from abc import ABC, abstractmethod
from pathlib import Path, PurePath
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from supabase import AsyncClient, StorageException

from app.settings import Settings
from app.utils.logging_config import logger
from app.utils.result import AppError, ErrorKind

Locator = str


class UploadContext(BaseModel):
    report_id: str
    uploader_ip: Optional[str] = None


# most filesystems cap a single path component at 255 bytes
MAX_OBJECT_NAME_BYTES = 255
MAX_SUFFIX_BYTES = 16


def _truncate_utf8(value: str, limit: int) -> str:
    return value.encode("utf-8")[: max(limit, 0)].decode("utf-8", "ignore")


def unique_object_name(original_name: str) -> str:
    """
    ``photo.jpg`` -> ``photo_1718030000000_a1b2c3d4.jpg``

    The stem is shortened so the result never exceeds ``MAX_OBJECT_NAME_BYTES``
    once encoded as UTF-8.
    """
    base = PurePath(original_name.replace("\\", "/")).name or "upload"
    path = PurePath(base)
    suffix = path.suffix
    stem = path.stem
    if len(suffix.encode("utf-8")) > MAX_SUFFIX_BYTES:
        stem, suffix = base, ""

    millis = int(time.time() * 1000)
    tail = f"_{millis}_{secrets.token_hex(4)}{suffix}"
    stem = _truncate_utf8(stem, MAX_OBJECT_NAME_BYTES - len(tail.encode("utf-8")))
    return f"{stem or 'upload'}{tail}"


class StorageBackend(ABC):
    """
    Byte storage for attachments.

    Every method raises ``AppError`` with a kind chosen at the failure site.
    No backend retries on its own.
    """

    name: str

    @abstractmethod
    async def upload(
        self, data: bytes, name: str, mime_type: str, context: UploadContext
    ) -> Locator:
        raise NotImplementedError

    @abstractmethod
    async def public_url(self, locator: Locator) -> str:
        raise NotImplementedError

    @abstractmethod
    async def thumbnail_url(self, locator: Locator) -> str:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, locator: Locator) -> bool:
        raise NotImplementedError


class LocalStorageBackend(StorageBackend):
    """Writes files under ``<root>/<report_id>/`` and serves them from a static route."""

    name = "local"

    def __init__(self, root: str, url_prefix: str = "/uploads") -> None:
        self.root = Path(root).resolve()
        self.url_prefix = url_prefix.rstrip("/")

    def _resolve(self, locator: str) -> Path:
        candidate = (self.root / locator.strip().lstrip("/")).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise AppError(
                ErrorKind.PERMISSION_DENIED,
                "Access denied: path outside uploads directory.",
                {"locator": locator},
            ) from exc
        return candidate

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "xb") as buffer:
            buffer.write(data)

    async def upload(
        self, data: bytes, name: str, mime_type: str, context: UploadContext
    ) -> Locator:
        target = self._resolve(f"{context.report_id}/{unique_object_name(name)}")
        try:
            await asyncio.to_thread(self._write, target, data)
        except PermissionError as exc:
            logger.error(f"Permission denied writing {target}: {exc}")
            raise AppError(
                ErrorKind.PERMISSION_DENIED,
                f"Failed to upload file {name}: permission denied.",
                {"backend": self.name},
                exc,
            ) from exc
        except FileExistsError as exc:
            raise AppError(
                ErrorKind.ALREADY_EXISTS,
                f"Failed to upload file {name}: target already exists.",
                {"backend": self.name},
                exc,
            ) from exc
        except OSError as exc:
            logger.error(f"Failed to write {target}: {exc}", exc_info=True)
            raise AppError(
                ErrorKind.SYSTEM_FAILURE,
                f"Failed to upload file {name}: {exc}",
                {"backend": self.name},
                exc,
            ) from exc

        locator = target.relative_to(self.root).as_posix()
        logger.info(f"File stored locally at: {locator}")
        return locator

    async def public_url(self, locator: Locator) -> str:
        self._resolve(locator)
        return f"{self.url_prefix}/{quote(locator.lstrip('/'))}"

    async def thumbnail_url(self, locator: Locator) -> str:
        # no thumbnail generation for local storage
        return await self.public_url(locator)

    async def delete(self, locator: Locator) -> bool:
        target = self._resolve(locator)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError:
            return False
        except PermissionError as exc:
            raise AppError(
                ErrorKind.PERMISSION_DENIED,
                f"Failed to delete {locator}: permission denied.",
                {"backend": self.name},
                exc,
            ) from exc
        except OSError as exc:
            raise AppError(
                ErrorKind.SYSTEM_FAILURE,
                f"Failed to delete {locator}: {exc}",
                {"backend": self.name},
                exc,
            ) from exc
        logger.info(f"Deleted local file: {locator}")
        return True


def _storage_status(exc: StorageException) -> Optional[int]:
    status = getattr(exc, "status", None)
    if status is None and exc.args and isinstance(exc.args[0], dict):
        status = exc.args[0].get("statusCode") or exc.args[0].get("status")
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def classify_storage_error(exc: Exception) -> ErrorKind:
    """Maps a Supabase/httpx exception to an error kind, using status codes only."""
    if isinstance(exc, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    if isinstance(exc, httpx.TransportError):
        return ErrorKind.UNAVAILABLE
    if isinstance(exc, StorageException):
        status = _storage_status(exc)
        if status in (401, 403):
            return ErrorKind.PERMISSION_DENIED
        if status == 404:
            return ErrorKind.NOT_FOUND
        if status == 409:
            return ErrorKind.ALREADY_EXISTS
        if status == 413:
            return ErrorKind.VALIDATION
        if status == 429:
            return ErrorKind.RATE_LIMITED
        if status is not None and status >= 500:
            return ErrorKind.UNAVAILABLE
    return ErrorKind.SYSTEM_FAILURE


class SupabaseStorageBackend(StorageBackend):
    """Uploads into ``<report_id>/`` folders of a Supabase Storage bucket."""

    name = "supabase"

    def __init__(
        self, client: AsyncClient, bucket: str, thumbnail_size: int = 320
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.thumbnail_size = thumbnail_size

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def _error(self, exc: Exception, operation: str, target: str) -> AppError:
        kind = classify_storage_error(exc)
        logger.error(
            f"Supabase {operation} failed for {target} ({kind.value}): {exc}",
            exc_info=kind is ErrorKind.SYSTEM_FAILURE,
        )
        return AppError(
            kind,
            f"Storage {operation} failed for {target}.",
            {"backend": self.name, "operation": operation},
            exc,
        )

    async def upload(
        self, data: bytes, name: str, mime_type: str, context: UploadContext
    ) -> Locator:
        storage_path = f"{context.report_id}/{unique_object_name(name)}"
        try:
            response: Any = await self._bucket().upload(
                path=storage_path,
                file=data,
                file_options={"content-type": mime_type, "upsert": "false"},
            )
        except (StorageException, httpx.HTTPError) as exc:
            raise self._error(exc, "upload", name) from exc

        locator = getattr(response, "path", None) or storage_path
        logger.info(f"File uploaded to storage at path: {locator}")
        return locator

    async def public_url(self, locator: Locator) -> str:
        try:
            return await self._bucket().get_public_url(locator)
        except (StorageException, httpx.HTTPError) as exc:
            raise self._error(exc, "public_url", locator) from exc

    async def thumbnail_url(self, locator: Locator) -> str:
        try:
            return await self._bucket().get_public_url(
                locator,
                {
                    "transform": {
                        "width": self.thumbnail_size,
                        "height": self.thumbnail_size,
                        "resize": "contain",
                    }
                },
            )
        except (StorageException, httpx.HTTPError) as exc:
            raise self._error(exc, "thumbnail_url", locator) from exc

    async def delete(self, locator: Locator) -> bool:
        try:
            removed = await self._bucket().remove([locator])
        except (StorageException, httpx.HTTPError) as exc:
            raise self._error(exc, "delete", locator) from exc
        deleted = bool(removed)
        if deleted:
            logger.info(f"Deleted storage object: {locator}")
        return deleted


def build_storage_backends(
    settings: Settings, supabase_client: Optional[AsyncClient] = None
) -> tuple[StorageBackend, dict[str, StorageBackend]]:
    """
    Builds the configured upload backend once, at start-up.

    Returns the backend new uploads go to and a name -> backend map used to
    reach objects written by any configured backend.
    """
    backends: dict[str, StorageBackend] = {
        LocalStorageBackend.name: LocalStorageBackend(
            settings.UPLOADS_DIR, settings.UPLOADS_URL_PREFIX
        )
    }
    if supabase_client is not None:
        backends[SupabaseStorageBackend.name] = SupabaseStorageBackend(
            supabase_client, settings.UPLOADS_BUCKET, settings.THUMBNAIL_SIZE
        )

    if settings.STORAGE_BACKEND not in backends:
        raise RuntimeError(
            f"Storage backend '{settings.STORAGE_BACKEND}' is not configured."
        )
    active = backends[settings.STORAGE_BACKEND]
    logger.info(f"Using '{active.name}' storage backend")
    return active, backends
