import os
import logging
from functools import lru_cache
from typing import Optional

import redis
from redis.exceptions import RedisError, AuthenticationError

# Configure module-level logger
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Creates a singleton Redis client for override lists and daily stats.

    Reads configuration from environment variables:
    - REDIS_HOST: Hostname (default: localhost)
    - REDIS_PORT: Port (default: 6379)
    - REDIS_DB: Database index (default: 0)
    - REDIS_PASSWORD: Password (REQUIRED)
    - REDIS_MAX_CONNECTIONS: Pool size (default: 50)
    """
    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", 6379))
    db = int(os.getenv("REDIS_DB", 0))
    password = os.getenv("REDIS_PASSWORD")
    max_connections = int(os.getenv("REDIS_MAX_CONNECTIONS", 50))

    if not password:
        logger.warning("REDIS_PASSWORD environment variable is not set.")
        raise ValueError("REDIS_PASSWORD is required to connect to Redis.")

    try:
        pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=True,  # Override entries are JSON strings
            max_connections=max_connections,
            socket_connect_timeout=2.0,
            socket_timeout=2.0      # Override lookups sit on the request path
        )

        client = redis.Redis(connection_pool=pool)

        # Ping so a dead server is detected at startup, not on the first verdict
        client.ping()
        logger.info(f"Connected to Redis at {host}:{port}/{db}")

        return client

    except AuthenticationError:
        logger.critical("Redis authentication failed. Check REDIS_PASSWORD.")
        raise
    except RedisError as e:
        logger.error(f"Could not connect to Redis: {e}")
        raise


def get_optional_redis_client() -> Optional[redis.Redis]:
    """
    Redis client, or None when Redis is not configured or unreachable.

    Callers fall back to in-process stores so classification never
    depends on Redis being up.
    """
    try:
        return get_redis_client()
    except (ValueError, RedisError) as e:
        logger.warning(f"Redis unavailable, using in-process stores: {e}")
        return None
