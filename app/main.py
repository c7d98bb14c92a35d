from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.v1 import files as files_router
from app.config.db import (
    check_db_connection,
    create_engine,
    create_session_factory,
    create_tables,
)
from app.config.redis import check_redis_connection, create_redis_client
from app.config.supabase import check_supabase_connection, create_supabase_client
from app.services.ingestion import UploadOrchestrator
from app.services.locks import InProcessReportLocks, RedisReportLocks
from app.services.processing import ProcessingStatusMachine
from app.services.records import SqlFileRecordStore, SqlReportStore
from app.services.storage import build_storage_backends
from app.settings import Settings, settings as default_settings
from app.utils.logging_config import logger


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Build every client and service once at startup and release them on shutdown.
        """
        engine = create_engine(settings)
        session_factory = create_session_factory(engine)
        if settings.CREATE_TABLES_ON_STARTUP:
            await create_tables(engine)
        await check_db_connection(session_factory)

        supabase_client = None
        if settings.STORAGE_BACKEND == "supabase":
            supabase_client = await create_supabase_client(settings)
            await check_supabase_connection(supabase_client, settings.UPLOADS_BUCKET)

        redis_client = None
        if settings.QUOTA_LOCK_BACKEND == "redis":
            if settings.REDIS_URL is None:
                raise RuntimeError("REDIS_URL is required for redis quota locks.")
            redis_client = create_redis_client(str(settings.REDIS_URL))
            await check_redis_connection(redis_client)
            locks = RedisReportLocks(redis_client, settings.QUOTA_LOCK_TIMEOUT)
        else:
            locks = InProcessReportLocks()

        storage, backends = build_storage_backends(settings, supabase_client)
        file_store = SqlFileRecordStore(session_factory)
        app.state.orchestrator = UploadOrchestrator(
            storage=storage,
            files=file_store,
            reports=SqlReportStore(session_factory),
            locks=locks,
            status_machine=ProcessingStatusMachine(
                file_store, strict=settings.STRICT_STATUS_TRANSITIONS
            ),
            backends=backends,
        )
        logger.info("FILE INGESTION SERVICES ARE READY")

        yield

        if redis_client is not None:
            await redis_client.aclose()
        await engine.dispose()
        logger.info("Connections closed")

    app = FastAPI(
        lifespan=lifespan,
        title="Compliance Intake",
        description="File intake for compliance reports",
    )

    app.include_router(files_router.router, prefix="/api/v1/files", tags=["Files"])

    if settings.STORAGE_BACKEND == "local":
        app.mount(
            settings.UPLOADS_URL_PREFIX,
            StaticFiles(directory=settings.UPLOADS_DIR, check_dir=False),
            name="uploads",
        )

    @app.get("/")
    def read_root() -> dict[str, str]:
        return {"message": "Hello from Compliance Intake API!"}

    return app


app = create_app()
