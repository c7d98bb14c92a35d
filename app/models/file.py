"""File model for uploaded report attachments."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, UTCDateTime

if TYPE_CHECKING:
    from app.schemas.file import FileRecord


class FileStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
VIDEO_MIME_TYPES = frozenset({"video/mp4", "video/avi", "video/mov"})
DOCUMENT_MIME_TYPES = frozenset({"application/pdf"})
SUPPORTED_MIME_TYPES = IMAGE_MIME_TYPES | VIDEO_MIME_TYPES | DOCUMENT_MIME_TYPES


def file_category(mime_type: str) -> str:
    """Returns ``image``, ``video``, ``document`` or ``unknown``."""
    if mime_type in IMAGE_MIME_TYPES:
        return "image"
    if mime_type in VIDEO_MIME_TYPES:
        return "video"
    if mime_type in DOCUMENT_MIME_TYPES:
        return "document"
    return "unknown"


class File(BaseModel):
    __tablename__ = "files"

    id: Mapped[str] = mapped_column(String(11), primary_key=True)
    report_id: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    storage_locator: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        comment="Backend-opaque reference: relative path or remote object path.",
    )
    storage_backend: Mapped[str] = mapped_column(String(20), nullable=False)
    public_url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    uploaded_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    uploaded_by_ip: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    processing_status: Mapped[FileStatus] = mapped_column(
        Enum(
            FileStatus,
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=FileStatus.PENDING,
    )

    @classmethod
    def from_record(cls, record: "FileRecord") -> "File":
        return cls(**record.model_dump())

    def __repr__(self) -> str:
        return f"<File(id={self.id}, original_name='{self.original_name}', status='{self.processing_status.value}')>"
