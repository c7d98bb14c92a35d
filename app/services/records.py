"""Persistence of file records and the report file-list projection."""

from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.file import File, FileStatus
from app.models.report import Report
from app.schemas.file import FileRecord
from app.utils.logging_config import logger
from app.utils.result import AppError, ErrorKind


class FileRecordStore(Protocol):
    async def get(self, file_id: str) -> Optional[FileRecord]: ...

    async def list_by_report(self, report_id: str) -> list[FileRecord]: ...

    async def list_all(self) -> list[FileRecord]: ...

    async def count_by_report(self, report_id: str) -> int: ...

    async def put(self, record: FileRecord) -> None: ...

    async def update_status(
        self, file_id: str, status: FileStatus
    ) -> Optional[FileRecord]: ...

    async def delete(self, file_id: str) -> bool: ...


class ReportStore(Protocol):
    async def update(self, report_id: str, uploaded_files: list[str]) -> list[str]: ...

    async def remove_file(self, report_id: str, file_id: str) -> None: ...


@contextmanager
def _db_errors(operation: str, target: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise AppError(
            ErrorKind.ALREADY_EXISTS,
            f"Database {operation} failed: {target} already exists.",
            {"operation": operation},
            exc,
        ) from exc
    except OperationalError as exc:
        logger.error(f"Database unavailable during {operation} of {target}: {exc}")
        raise AppError(
            ErrorKind.UNAVAILABLE,
            f"Database {operation} failed: database unavailable.",
            {"operation": operation},
            exc,
        ) from exc
    except SQLAlchemyError as exc:
        logger.error(f"Database {operation} of {target} failed: {exc}", exc_info=True)
        raise AppError(
            ErrorKind.SYSTEM_FAILURE,
            f"Database {operation} failed for {target}.",
            {"operation": operation},
            exc,
        ) from exc


def _to_record(row: File) -> FileRecord:
    try:
        return FileRecord.model_validate(row)
    except ValidationError as exc:
        raise AppError(
            ErrorKind.DATA_INTEGRITY,
            f"Stored file {row.id} is not a valid file record.",
            {"file_id": row.id, "errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            exc,
        ) from exc


class SqlFileRecordStore:
    """File records kept in the ``files`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get(self, file_id: str) -> Optional[FileRecord]:
        with _db_errors("get", file_id):
            async with self.session_factory() as session:
                row = await session.get(File, file_id)
                return _to_record(row) if row else None

    async def list_by_report(self, report_id: str) -> list[FileRecord]:
        with _db_errors("list", report_id):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(File)
                    .where(File.report_id == report_id)
                    .order_by(File.uploaded_at, File.id)
                )
                return [_to_record(row) for row in result.scalars().all()]

    async def list_all(self) -> list[FileRecord]:
        with _db_errors("list", "all files"):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(File).order_by(File.uploaded_at, File.id)
                )
                return [_to_record(row) for row in result.scalars().all()]

    async def count_by_report(self, report_id: str) -> int:
        with _db_errors("count", report_id):
            async with self.session_factory() as session:
                count = await session.scalar(
                    select(func.count())
                    .select_from(File)
                    .where(File.report_id == report_id)
                )
                return int(count or 0)

    async def put(self, record: FileRecord) -> None:
        with _db_errors("insert", record.id):
            async with self.session_factory() as session:
                session.add(File.from_record(record))
                await session.commit()

    async def update_status(
        self, file_id: str, status: FileStatus
    ) -> Optional[FileRecord]:
        with _db_errors("update", file_id):
            async with self.session_factory() as session:
                row = await session.get(File, file_id)
                if row is None:
                    return None
                row.processing_status = status
                await session.flush()
                record = _to_record(row)
                await session.commit()
                return record

    async def delete(self, file_id: str) -> bool:
        with _db_errors("delete", file_id):
            async with self.session_factory() as session:
                row = await session.get(File, file_id)
                if row is None:
                    return False
                await session.delete(row)
                await session.commit()
                return True


class SqlReportStore:
    """
    File-list projection kept in the ``reports`` table.

    Updates merge: ids already present stay where they are, new ids are
    appended in the given order, so replaying an update is harmless.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def update(self, report_id: str, uploaded_files: list[str]) -> list[str]:
        with _db_errors("update", report_id):
            async with self.session_factory() as session:
                report = await session.get(Report, report_id, with_for_update=True)
                merged = list(report.uploaded_files or []) if report else []
                for file_id in uploaded_files:
                    if file_id not in merged:
                        merged.append(file_id)

                if report is None:
                    session.add(Report(id=report_id, uploaded_files=merged))
                else:
                    report.uploaded_files = merged
                await session.commit()
                return merged

    async def remove_file(self, report_id: str, file_id: str) -> None:
        with _db_errors("update", report_id):
            async with self.session_factory() as session:
                report = await session.get(Report, report_id, with_for_update=True)
                if report is None or file_id not in (report.uploaded_files or []):
                    return
                report.uploaded_files = [
                    existing for existing in report.uploaded_files if existing != file_id
                ]
                await session.commit()
