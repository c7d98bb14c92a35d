from typing import Literal, Optional

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./compliance_intake.db", alias="DATABASE_URL"
    )
    DEBUG: bool = Field(default=False, alias="DEBUG")
    CREATE_TABLES_ON_STARTUP: bool = Field(
        default=False, alias="CREATE_TABLES_ON_STARTUP"
    )  # local development only, migrations run through alembic otherwise

    # Storage Configuration
    STORAGE_BACKEND: Literal["local", "supabase"] = Field(
        default="local", alias="STORAGE_BACKEND"
    )
    UPLOADS_DIR: str = Field(default="./uploads", alias="UPLOADS_DIR")
    UPLOADS_URL_PREFIX: str = Field(default="/uploads", alias="UPLOADS_URL_PREFIX")
    SUPABASE_URL: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    SUPABASE_SERVICE_KEY: Optional[str] = Field(
        default=None, alias="SUPABASE_SERVICE_KEY"
    )
    UPLOADS_BUCKET: str = Field(default="report-uploads", alias="UPLOADS_BUCKET")
    THUMBNAIL_SIZE: int = Field(default=320, alias="THUMBNAIL_SIZE")

    # Quota Lock Configuration
    QUOTA_LOCK_BACKEND: Literal["memory", "redis"] = Field(
        default="memory", alias="QUOTA_LOCK_BACKEND"
    )
    REDIS_URL: Optional[RedisDsn] = Field(default=None, alias="REDIS_URL")
    QUOTA_LOCK_TIMEOUT: float = Field(
        default=120.0, alias="QUOTA_LOCK_TIMEOUT"
    )  # seconds a batch may hold the per-report lock

    STRICT_STATUS_TRANSITIONS: bool = Field(
        default=False, alias="STRICT_STATUS_TRANSITIONS"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
