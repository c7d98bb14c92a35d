"""File validation utilities."""

import enum
from typing import Optional

from pydantic import BaseModel

from app.models.file import SUPPORTED_MIME_TYPES
from app.schemas.file import MAX_FILE_SIZE, UploadCandidate
from app.utils.identifiers import is_valid_report_id
from app.utils.result import ErrorDetail, ErrorKind

MAX_FILES_PER_REPORT = 10
MAX_NAME_LENGTH = 255


class RejectionReason(str, enum.Enum):
    UNSUPPORTED_TYPE = "unsupported type"
    TOO_LARGE = "too large"
    INVALID_REPORT_ID = "invalid report id"
    INVALID_NAME = "invalid name"
    QUOTA_EXCEEDED = "quota exceeded"


class Verdict(BaseModel):
    accepted: bool
    reason: Optional[RejectionReason] = None
    message: str = ""

    @classmethod
    def accept(cls) -> "Verdict":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> "Verdict":
        return cls(accepted=False, reason=reason, message=message)

    def to_error(self) -> ErrorDetail:
        return ErrorDetail(
            kind=ErrorKind.VALIDATION,
            message=self.message,
            details={"reason": self.reason.value if self.reason else None},
        )


class ValidationGate:
    """
    Stateless check of an upload candidate against type, size, report id
    and per-report quota rules.

    Rules are applied in that order and the first failure wins. The gate does
    no I/O: the caller supplies how many files the report already holds,
    including files accepted earlier in the same batch.
    """

    def __init__(
        self,
        max_file_size: int = MAX_FILE_SIZE,
        max_files_per_report: int = MAX_FILES_PER_REPORT,
    ) -> None:
        self.max_file_size = max_file_size
        self.max_files_per_report = max_files_per_report

    def validate(
        self, candidate: UploadCandidate, existing_count_for_report: int
    ) -> Verdict:
        if candidate.mime_type not in SUPPORTED_MIME_TYPES:
            return Verdict.reject(
                RejectionReason.UNSUPPORTED_TYPE,
                f"Unsupported file type: {candidate.mime_type}. "
                f"Supported types: {', '.join(sorted(SUPPORTED_MIME_TYPES))}",
            )

        if candidate.size < 0 or candidate.size > self.max_file_size:
            return Verdict.reject(
                RejectionReason.TOO_LARGE,
                f"File too large: {candidate.size} bytes. "
                f"Maximum size: {self.max_file_size} bytes.",
            )

        if not is_valid_report_id(candidate.report_id):
            return Verdict.reject(
                RejectionReason.INVALID_REPORT_ID,
                "Invalid report ID: must match report ID format (rep_XXXXXX).",
            )

        if existing_count_for_report >= self.max_files_per_report:
            return Verdict.reject(
                RejectionReason.QUOTA_EXCEEDED,
                f"Maximum {self.max_files_per_report} files allowed per report.",
            )

        return Verdict.accept()


def validate_file_name(name: Optional[str]) -> Verdict:
    """Checks the original file name of a candidate the gate has accepted."""
    if not name or not name.strip():
        return Verdict.reject(
            RejectionReason.INVALID_NAME, "Invalid filename: must be a non-empty string."
        )
    if len(name.strip()) > MAX_NAME_LENGTH:
        return Verdict.reject(
            RejectionReason.INVALID_NAME,
            f"Invalid filename: longer than {MAX_NAME_LENGTH} characters.",
        )
    return Verdict.accept()
