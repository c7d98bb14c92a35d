
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Bootstrap to ensure tests can import app modules without modifying app import paths.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config.db import create_session_factory, create_tables  # noqa: E402
from app.schemas.file import FileRecord  # noqa: E402
from app.services.ingestion import UploadOrchestrator  # noqa: E402
from app.services.records import SqlFileRecordStore, SqlReportStore  # noqa: E402
from app.services.storage import LocalStorageBackend  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402


def pytest_configure(config):
    config.pluginmanager.unregister(name="anyio")


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Provides a SQLite engine with the schema created, one database per test."""
    db_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", future=True, echo=False
    )
    await create_tables(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def file_store(session_factory):
    return SqlFileRecordStore(session_factory)


@pytest.fixture
def report_store(session_factory):
    return SqlReportStore(session_factory)


@pytest.fixture
def uploads_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def local_storage(uploads_dir):
    return LocalStorageBackend(str(uploads_dir), "/uploads")


@pytest.fixture
def orchestrator(local_storage, file_store, report_store):
    return UploadOrchestrator(
        storage=local_storage, files=file_store, reports=report_store
    )


def build_record(file_id="file_aaaaaa", report_id="rep_AbC123", **overrides):
    values = dict(
        id=file_id,
        report_id=report_id,
        original_name="photo.png",
        mime_type="image/png",
        size=2048,
        storage_locator=f"{report_id}/photo_1_abcd.png",
        storage_backend="local",
        public_url=f"/uploads/{report_id}/photo_1_abcd.png",
        thumbnail_url=f"/uploads/{report_id}/photo_1_abcd.png",
        uploaded_at=datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc),
        uploaded_by_ip="127.0.0.1",
    )
    values.update(overrides)
    return FileRecord(**values)


@pytest.fixture
def make_record():
    """Factory for valid file records; keyword arguments override fields."""
    return build_record
