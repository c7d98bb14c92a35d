"""Supabase client construction and health check."""

from supabase import AsyncClient, StorageException, SupabaseException, acreate_client

from app.settings import Settings
from app.utils.logging_config import logger


async def create_supabase_client(settings: Settings) -> AsyncClient:
    """
    Creates the Supabase client used by the storage backend.

    Called once from the application lifespan; the client is handed to the
    backend rather than fetched from a module-level cache.
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the supabase backend."
        )
    try:
        return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    except SupabaseException as e:
        logger.error(f"Supabase client creation error: {e}")
        raise


async def check_supabase_connection(client: AsyncClient, bucket: str):
    """
    Checks the connection to Supabase by reading the uploads bucket.
    Raises an exception if the connection fails.
    """
    try:
        await client.storage.get_bucket(bucket)
        logger.info("Supabase connection successful")
    except StorageException as e:
        logger.error(f"Supabase connection error: {e}")
        raise
