# core/redis_client.py
"""
Redis client factory with connection pooling and error handling.

Redis holds the per-user Slack tokens written by the OAuth redirect and
read by both the intake and the worker process.
"""

import redis
from redis.connection import ConnectionPool
from typing import Optional
from core.config import settings
from core.logger import logger


class RedisClient:
    """
    Redis client with connection pooling.

    Constructed once per process by the client registry; the connection is
    verified with a PING so a bad endpoint fails at startup.
    """

    def __init__(self):
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._initialize_pool()

    def _initialize_pool(self):
        """
        Create connection pool and verify connectivity.
        """
        try:
            logger.info(
                f"Initializing Redis connection pool "
                f"host={settings.REDIS_HOST} port={settings.REDIS_PORT} ssl={settings.REDIS_SSL}"
            )

            pool_kwargs = {
                "host": settings.REDIS_HOST,
                "port": settings.REDIS_PORT,
                "db": settings.REDIS_DB,
                "decode_responses": True,
                "socket_timeout": settings.REDIS_SOCKET_TIMEOUT,
                "socket_connect_timeout": settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                "max_connections": settings.REDIS_MAX_CONNECTIONS,
                "retry_on_timeout": True,
                "health_check_interval": 30
            }

            if settings.REDIS_SSL:
                pool_kwargs["connection_class"] = redis.SSLConnection

            if settings.REDIS_PASSWORD:
                pool_kwargs["password"] = settings.REDIS_PASSWORD

            self._pool = ConnectionPool(**pool_kwargs)
            self._client = redis.Redis(connection_pool=self._pool)

            self._client.ping()
            logger.info("Redis connection pool initialized successfully")

        except redis.ConnectionError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error initializing Redis: {e}")
            raise

    def get_client(self) -> redis.Redis:
        return self._client

    def close(self):
        """
        Close connection pool (called on shutdown).
        """
        if self._pool:
            self._pool.disconnect()
            logger.info("Redis connection pool closed")
