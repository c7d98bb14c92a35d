from types import SimpleNamespace

import httpx
import pytest
from supabase import StorageException

from app.services.storage import (
    SupabaseStorageBackend,
    UploadContext,
    build_storage_backends,
    classify_storage_error,
)
from app.settings import Settings
from app.utils.result import AppError, ErrorKind

CONTEXT = UploadContext(report_id="rep_AbC123")


class FakeBucket:
    def __init__(self, error=None):
        self.error = error
        self.uploads = []
        self.removed = []

    async def upload(self, path, file, file_options=None):
        if self.error:
            raise self.error
        self.uploads.append((path, file, file_options))
        return SimpleNamespace(path=path, full_path=f"report-uploads/{path}")

    async def get_public_url(self, path, options=None):
        if self.error:
            raise self.error
        url = f"https://project.supabase.co/storage/v1/object/public/report-uploads/{path}"
        if options and "transform" in options:
            transform = options["transform"]
            url += f"?width={transform['width']}&height={transform['height']}"
        return url

    async def remove(self, paths):
        if self.error:
            raise self.error
        self.removed.extend(paths)
        return [{"name": path} for path in paths]


class FakeStorage:
    def __init__(self, bucket):
        self.bucket = bucket
        self.requested = []

    def from_(self, name):
        self.requested.append(name)
        return self.bucket


def make_backend(error=None):
    bucket = FakeBucket(error)
    client = SimpleNamespace(storage=FakeStorage(bucket))
    return SupabaseStorageBackend(client, "report-uploads", thumbnail_size=200), bucket


def storage_error(status):
    return StorageException({"statusCode": status, "message": "failed", "error": "x"})


@pytest.mark.parametrize(
    "status, kind",
    [
        (401, ErrorKind.PERMISSION_DENIED),
        (403, ErrorKind.PERMISSION_DENIED),
        (404, ErrorKind.NOT_FOUND),
        (409, ErrorKind.ALREADY_EXISTS),
        (413, ErrorKind.VALIDATION),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.UNAVAILABLE),
        (503, ErrorKind.UNAVAILABLE),
        (400, ErrorKind.SYSTEM_FAILURE),
    ],
)
def test_storage_errors_are_classified_by_status(status, kind):
    assert classify_storage_error(storage_error(status)) is kind


def test_transport_errors_are_classified():
    request = httpx.Request("POST", "https://project.supabase.co")

    assert classify_storage_error(httpx.ReadTimeout("slow", request=request)) is ErrorKind.TIMEOUT
    assert (
        classify_storage_error(httpx.ConnectError("refused", request=request))
        is ErrorKind.UNAVAILABLE
    )


def test_message_text_does_not_drive_classification():
    assert (
        classify_storage_error(StorageException("permission denied: not found"))
        is ErrorKind.SYSTEM_FAILURE
    )
    assert classify_storage_error(ValueError("timeout")) is ErrorKind.SYSTEM_FAILURE


@pytest.mark.asyncio
async def test_upload_sends_content_type_without_upsert():
    backend, bucket = make_backend()

    locator = await backend.upload(b"\x89PNG", "photo.png", "image/png", CONTEXT)

    path, data, options = bucket.uploads[0]
    assert locator == path
    assert path.startswith("rep_AbC123/photo_")
    assert data == b"\x89PNG"
    assert options == {"content-type": "image/png", "upsert": "false"}


@pytest.mark.asyncio
async def test_urls_and_delete():
    backend, bucket = make_backend()
    locator = "rep_AbC123/photo_1_abcd.png"

    assert (await backend.public_url(locator)).endswith(locator)
    assert (await backend.thumbnail_url(locator)).endswith("?width=200&height=200")
    assert await backend.delete(locator) is True
    assert bucket.removed == [locator]


@pytest.mark.asyncio
async def test_backend_failures_raise_classified_errors():
    backend, _ = make_backend(error=storage_error(409))

    with pytest.raises(AppError) as exc_info:
        await backend.upload(b"data", "photo.png", "image/png", CONTEXT)

    assert exc_info.value.kind is ErrorKind.ALREADY_EXISTS
    assert exc_info.value.details == {"backend": "supabase", "operation": "upload"}
    assert isinstance(exc_info.value.inner_error, StorageException)


def test_build_storage_backends_requires_a_configured_backend(tmp_path):
    settings = Settings(STORAGE_BACKEND="supabase", UPLOADS_DIR=str(tmp_path))

    with pytest.raises(RuntimeError):
        build_storage_backends(settings)


def test_build_storage_backends_registers_both(tmp_path):
    backend, _ = make_backend()
    settings = Settings(STORAGE_BACKEND="supabase", UPLOADS_DIR=str(tmp_path))

    active, backends = build_storage_backends(settings, backend.client)

    assert active.name == "supabase"
    assert set(backends) == {"local", "supabase"}
