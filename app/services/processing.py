"""Processing status lifecycle of stored files."""

from typing import Union

from app.models.file import FileStatus
from app.schemas.file import FileRecord
from app.services.records import FileRecordStore
from app.utils.logging_config import logger
from app.utils.result import AppError, ErrorKind, Result, attempt_async

ALLOWED_TRANSITIONS: dict[FileStatus, frozenset[FileStatus]] = {
    FileStatus.PENDING: frozenset({FileStatus.PROCESSING, FileStatus.FAILED}),
    FileStatus.PROCESSING: frozenset({FileStatus.COMPLETED, FileStatus.FAILED}),
    FileStatus.COMPLETED: frozenset(),
    FileStatus.FAILED: frozenset(),
}


def can_transition(current: FileStatus, new: FileStatus) -> bool:
    return current == new or new in ALLOWED_TRANSITIONS[current]


class ProcessingStatusMachine:
    """
    Moves a file through pending -> processing -> completed | failed.

    By default any status may follow any other, which is what existing
    processing jobs rely on. With ``strict`` on, only the forward moves in
    ``ALLOWED_TRANSITIONS`` are accepted.
    """

    def __init__(self, store: FileRecordStore, strict: bool = False) -> None:
        self.store = store
        self.strict = strict

    async def set_status(
        self, file_id: str, new_status: Union[FileStatus, str]
    ) -> Result[FileRecord]:
        return await attempt_async(
            lambda: self._set_status(file_id, new_status),
            operation_name="set_status",
            details={"file_id": file_id},
        )

    async def _set_status(
        self, file_id: str, new_status: Union[FileStatus, str]
    ) -> FileRecord:
        try:
            status = FileStatus(new_status)
        except ValueError as exc:
            valid = ", ".join(s.value for s in FileStatus)
            raise AppError(
                ErrorKind.VALIDATION,
                f"Invalid processing status: {new_status}. Must be one of: {valid}",
                {"field": "status", "actual_value": str(new_status)},
            ) from exc

        current = await self.store.get(file_id)
        if current is None:
            raise AppError(
                ErrorKind.NOT_FOUND,
                f"File with ID '{file_id}' not found",
                {"resource_type": "file", "resource_id": file_id},
            )
        if current.processing_status == status:
            return current

        if self.strict and not can_transition(current.processing_status, status):
            raise AppError(
                ErrorKind.VALIDATION,
                f"Invalid status transition: {current.processing_status.value} -> {status.value}",
                {
                    "field": "status",
                    "from": current.processing_status.value,
                    "to": status.value,
                },
            )

        updated = await self.store.update_status(file_id, status)
        if updated is None:
            raise AppError(
                ErrorKind.NOT_FOUND,
                f"File with ID '{file_id}' not found",
                {"resource_type": "file", "resource_id": file_id},
            )
        logger.info(
            f"File {file_id} status: {current.processing_status.value} -> {status.value}"
        )
        return updated
