"""
Batch ingestion of report attachments.

``UploadOrchestrator`` validates each file of a batch, hands the bytes to the
configured storage backend, persists a file record and finally merges the new
ids into the report's file list. A failing file never stops the rest of the
batch.
"""

from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from app.models.file import IMAGE_MIME_TYPES, FileStatus
from app.schemas.file import BatchResult, FailedUpload, FileRecord, IncomingFile
from app.services.locks import InProcessReportLocks, ReportLease, ReportLocks
from app.services.processing import ProcessingStatusMachine
from app.services.records import FileRecordStore, ReportStore
from app.services.storage import Locator, StorageBackend, UploadContext
from app.utils.file_validator import ValidationGate, Verdict, validate_file_name
from app.utils.identifiers import generate_file_id, is_valid_report_id
from app.utils.logging_config import logger
from app.utils.result import AppError, ErrorKind, Result, attempt_async


class UploadOrchestrator:
    def __init__(
        self,
        storage: StorageBackend,
        files: FileRecordStore,
        reports: ReportStore,
        locks: Optional[ReportLocks] = None,
        gate: Optional[ValidationGate] = None,
        status_machine: Optional[ProcessingStatusMachine] = None,
        backends: Optional[Mapping[str, StorageBackend]] = None,
    ) -> None:
        self.storage = storage
        self.files = files
        self.reports = reports
        self.locks = locks or InProcessReportLocks()
        self.gate = gate or ValidationGate()
        self.status_machine = status_machine or ProcessingStatusMachine(files)
        self.backends = dict(backends or {})
        self.backends.setdefault(storage.name, storage)

    async def upload_batch(
        self,
        files: Sequence[IncomingFile],
        report_id: str,
        uploader_ip: Optional[str] = None,
    ) -> Result[BatchResult]:
        """
        Uploads every file of the batch in order and reports what happened.

        The envelope is successful whenever the batch ran to the end, even if
        no file made it; check ``BatchResult.all_failed``. Errors outside a
        single file (lock, count query) fail the envelope.
        """
        return await attempt_async(
            lambda: self._upload_batch(files, report_id, uploader_ip),
            operation_name="upload_batch",
            details={"report_id": report_id},
        )

    async def _upload_batch(
        self,
        files: Sequence[IncomingFile],
        report_id: str,
        uploader_ip: Optional[str],
    ) -> BatchResult:
        batch = BatchResult(total_requested=len(files))
        logger.info(f"Starting batch of {len(files)} file(s) for report {report_id}")

        async with self.locks.hold(report_id) as lease:
            report_count = await self.files.count_by_report(report_id)
            for incoming in files:
                record = await self._ingest_one(
                    incoming, report_id, uploader_ip, report_count, batch, lease
                )
                if record is not None:
                    report_count += 1

            if batch.uploaded:
                await self._merge_into_report(report_id, batch)

        logger.info(
            f"Batch for report {report_id} finished: "
            f"{batch.total_uploaded} of {batch.total_requested} uploaded"
        )
        return batch

    async def _ingest_one(
        self,
        incoming: IncomingFile,
        report_id: str,
        uploader_ip: Optional[str],
        report_count: int,
        batch: BatchResult,
        lease: ReportLease,
    ) -> Optional[FileRecord]:
        verdict = self.gate.validate(incoming.candidate(report_id), report_count)
        if verdict.accepted:
            verdict = validate_file_name(incoming.name)
        if not verdict.accepted:
            self._reject(batch, incoming.name, verdict)
            return None

        try:
            locator = await self.storage.upload(
                incoming.data,
                incoming.name,
                incoming.mime_type,
                UploadContext(report_id=report_id, uploader_ip=uploader_ip),
            )
        except AppError as exc:
            self._fail(batch, incoming.name, exc)
            return None
        except Exception as exc:
            logger.error(
                f"Unexpected storage error for {incoming.name}: {exc}", exc_info=True
            )
            self._fail(
                batch,
                incoming.name,
                AppError(ErrorKind.SYSTEM_FAILURE, f"Storage upload failed: {exc}", inner_error=exc),
            )
            return None

        try:
            public_url = await self.storage.public_url(locator)
            thumbnail_url = (
                await self.storage.thumbnail_url(locator)
                if incoming.mime_type in IMAGE_MIME_TYPES
                else ""
            )
            record = FileRecord(
                id=generate_file_id(),
                report_id=report_id,
                original_name=incoming.name,
                mime_type=incoming.mime_type,
                size=len(incoming.data),
                storage_locator=locator,
                storage_backend=self.storage.name,
                public_url=public_url,
                thumbnail_url=thumbnail_url,
                uploaded_at=datetime.now(timezone.utc),
                uploaded_by_ip=uploader_ip,
                processing_status=FileStatus.PENDING,
            )
            # the quota count read under the lock is only valid while we still own it
            await lease.refresh()
            await self.files.put(record)
        except ValidationError as exc:
            await self._discard(self.storage, locator)
            self._fail(
                batch,
                incoming.name,
                AppError(
                    ErrorKind.DATA_INTEGRITY,
                    "Uploaded file could not be recorded: invalid metadata.",
                    inner_error=exc,
                ),
            )
            return None
        except AppError as exc:
            await self._discard(self.storage, locator)
            self._fail(batch, incoming.name, exc)
            return None
        except Exception as exc:
            logger.error(
                f"Unexpected error recording {incoming.name}: {exc}", exc_info=True
            )
            await self._discard(self.storage, locator)
            self._fail(
                batch,
                incoming.name,
                AppError(
                    ErrorKind.SYSTEM_FAILURE,
                    f"Uploaded file could not be recorded: {exc}",
                    inner_error=exc,
                ),
            )
            return None

        batch.uploaded.append(record)
        logger.info(f"Stored {incoming.name} as {record.id} for report {report_id}")
        return record

    async def _merge_into_report(self, report_id: str, batch: BatchResult) -> None:
        try:
            await self.reports.update(report_id, [record.id for record in batch.uploaded])
        except AppError as exc:
            # file rows are the source of truth; the projection can be rebuilt from them
            logger.error(
                f"Failed to update file list of report {report_id} ({exc.kind.value}): {exc.message}"
            )
        except Exception as exc:
            logger.error(
                f"Failed to update file list of report {report_id}: {exc}", exc_info=True
            )

    def _reject(self, batch: BatchResult, name: str, verdict: Verdict) -> None:
        logger.info(f"Rejected {name}: {verdict.message}")
        batch.failed.append(
            FailedUpload(name=name, reason=verdict.reason.value, kind=ErrorKind.VALIDATION)
        )

    def _fail(self, batch: BatchResult, name: str, error: AppError) -> None:
        logger.warning(f"Failed to upload {name} ({error.kind.value}): {error.message}")
        batch.failed.append(FailedUpload(name=name, reason=error.message, kind=error.kind))

    async def _discard(self, backend: StorageBackend, locator: Locator) -> None:
        try:
            await backend.delete(locator)
        except AppError as exc:
            logger.warning(f"Could not remove orphaned object {locator}: {exc.message}")
        except Exception as exc:
            logger.warning(
                f"Could not remove orphaned object {locator}: {exc}", exc_info=True
            )

    async def get_file(self, file_id: str) -> Result[FileRecord]:
        return await attempt_async(
            lambda: self._require_file(file_id),
            operation_name="get_file",
            details={"file_id": file_id},
        )

    async def _require_file(self, file_id: str) -> FileRecord:
        record = await self.files.get(file_id)
        if record is None:
            raise AppError(
                ErrorKind.NOT_FOUND,
                f"File with ID '{file_id}' not found",
                {"resource_type": "file", "resource_id": file_id},
            )
        return record

    async def list_files(self) -> Result[list[FileRecord]]:
        """Every stored file across all reports, oldest first."""
        return await attempt_async(self.files.list_all, operation_name="list_files")

    async def list_files_for_report(self, report_id: str) -> Result[list[FileRecord]]:
        return await attempt_async(
            lambda: self._list_files(report_id),
            operation_name="list_files_for_report",
            details={"report_id": report_id},
        )

    async def _list_files(self, report_id: str) -> list[FileRecord]:
        if not is_valid_report_id(report_id):
            raise AppError(
                ErrorKind.VALIDATION,
                "Invalid report ID format. Must match pattern: rep_XXXXXX",
                {"field": "report_id", "actual_value": report_id},
            )
        return await self.files.list_by_report(report_id)

    async def set_file_status(
        self, file_id: str, status: Union[FileStatus, str]
    ) -> Result[FileRecord]:
        return await self.status_machine.set_status(file_id, status)

    async def delete_file(self, file_id: str) -> Result[bool]:
        """Removes the stored object and the record. Unknown ids yield ``False``."""
        return await attempt_async(
            lambda: self._delete_file(file_id),
            operation_name="delete_file",
            details={"file_id": file_id},
        )

    async def _delete_file(self, file_id: str) -> bool:
        record = await self.files.get(file_id)
        if record is None:
            return False

        backend = self.backends.get(record.storage_backend)
        if backend is None:
            logger.warning(
                f"No '{record.storage_backend}' backend configured; "
                f"leaving object {record.storage_locator} in place"
            )
        else:
            # the record is removed even if the object cannot be
            await self._discard(backend, record.storage_locator)

        deleted = await self.files.delete(file_id)
        if deleted:
            try:
                await self.reports.remove_file(record.report_id, file_id)
            except AppError as exc:
                logger.error(
                    f"Failed to drop {file_id} from report {record.report_id}: {exc.message}"
                )
            logger.info(f"Deleted file {file_id} of report {record.report_id}")
        return deleted
