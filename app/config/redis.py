"""Redis connection and client management."""

import redis.asyncio as redis
from app.utils import logger


def create_redis_client(url: str) -> redis.Redis:
    return redis.from_url(url, encoding="utf-8", decode_responses=True)


async def check_redis_connection(client: redis.Redis):
    """
    Checks the connection to the Redis server.
    Raises an exception if the connection fails.
    """
    try:
        if await client.ping():
            logger.info("Redis connection successful")
        else:
            raise ConnectionError(
                "Redis connection failed: PING command returned False"
            )
    except Exception as e:
        logger.error(f"Redis connection error: {e}")
        raise
