"""Pydantic schemas for file operations."""

import base64
import binascii
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from app.models.file import (
    IMAGE_MIME_TYPES,
    SUPPORTED_MIME_TYPES,
    FileStatus,
    file_category,
)
from app.utils.identifiers import FILE_ID_PATTERN, REPORT_ID_PATTERN
from app.utils.result import AppError, ErrorKind

MAX_FILE_SIZE = 10 * 1024 * 1024


class FileRecord(BaseModel):
    """A stored attachment of a report."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., pattern=FILE_ID_PATTERN)
    report_id: str = Field(..., pattern=REPORT_ID_PATTERN)
    original_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str
    size: int = Field(..., ge=0, le=MAX_FILE_SIZE)
    storage_locator: str = Field(..., min_length=1)
    storage_backend: str
    public_url: str
    thumbnail_url: str = ""
    uploaded_at: datetime
    uploaded_by_ip: Optional[str] = Field(default=None, max_length=45)
    processing_status: FileStatus = FileStatus.PENDING

    @field_validator("original_name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("mime_type")
    @classmethod
    def _check_mime_type(cls, value: str) -> str:
        if value not in SUPPORTED_MIME_TYPES:
            raise ValueError(f"Unsupported file type: {value}")
        return value

    @model_validator(mode="after")
    def _thumbnail_only_for_images(self) -> "FileRecord":
        if self.thumbnail_url and self.mime_type not in IMAGE_MIME_TYPES:
            raise ValueError("Thumbnail URL is only allowed for image files.")
        return self

    @property
    def category(self) -> str:
        return file_category(self.mime_type)

    @property
    def is_image(self) -> bool:
        return self.mime_type in IMAGE_MIME_TYPES


class UploadCandidate(BaseModel):
    """What the validation gate looks at for a single upload."""

    size: int
    mime_type: str
    report_id: str


class IncomingFile(BaseModel):
    """Raw bytes submitted as part of a batch."""

    data: bytes
    name: str
    mime_type: str

    def candidate(self, report_id: str) -> UploadCandidate:
        return UploadCandidate(
            size=len(self.data), mime_type=self.mime_type, report_id=report_id
        )

    @classmethod
    def from_base64(cls, payload: str, name: str, mime_type: str) -> "IncomingFile":
        """Decodes base64 content, with or without a ``data:<mime>;base64,`` prefix."""
        prefix = f"data:{mime_type};base64,"
        encoded = payload[len(prefix):] if payload.startswith(prefix) else payload
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise AppError(
                ErrorKind.VALIDATION,
                f"Invalid base64 data for file {name}.",
                {"field": "data", "file": name},
                exc,
            ) from exc
        return cls(data=data, name=name, mime_type=mime_type)


class FailedUpload(BaseModel):
    name: str
    reason: str
    kind: ErrorKind


class BatchResult(BaseModel):
    """Outcome of one batch. Partial success still yields a successful envelope."""

    uploaded: list[FileRecord] = Field(default_factory=list)
    failed: list[FailedUpload] = Field(default_factory=list)
    total_requested: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_uploaded(self) -> int:
        return len(self.uploaded)

    @property
    def all_failed(self) -> bool:
        return self.total_requested > 0 and not self.uploaded

    @property
    def partial(self) -> bool:
        return bool(self.uploaded) and bool(self.failed)


class FileStatusUpdate(BaseModel):
    status: FileStatus = Field(..., description="The requested processing status.")


class FileResponse(BaseModel):
    """Response schema for a stored file."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    report_id: str
    name: str = Field(..., validation_alias="original_name")
    type: str = Field(..., validation_alias="mime_type")
    category: str
    size: int
    url: str = Field(..., validation_alias="public_url")
    thumbnail_url: str
    uploaded_at: datetime
    uploaded_by_ip: Optional[str] = None
    processing_status: FileStatus


class BatchUploadResponse(BaseModel):
    """Response schema for a batch upload."""

    message: str
    files: list[FileResponse]
    failed: list[FailedUpload]
    total_uploaded: int
    total_requested: int


class FileListResponse(BaseModel):
    """Response schema for listing every stored file."""

    files: list[FileResponse]
    total: int


class Base64File(BaseModel):
    name: str = Field(..., description="Original file name.")
    mime_type: str = Field(..., description="MIME type of the decoded content.")
    data: str = Field(..., description="Base64 content, optionally as a data URL.")


class Base64UploadRequest(BaseModel):
    """Request schema for uploads sent as JSON instead of multipart."""

    report_id: str = Field(..., pattern=REPORT_ID_PATTERN)
    files: list[Base64File] = Field(..., min_length=1, max_length=10)
