"""Report projection holding the ids of attached files."""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class Report(BaseModel):
    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(10), primary_key=True)
    uploaded_files: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered ids of files attached to the report.",
    )

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, files={len(self.uploaded_files or [])})>"
