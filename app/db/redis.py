"""
Redis Connection Module

Redis is the message broker for the ARQ background jobs. When a user
uploads a file, we:
1. Save the file and create a DB record (fast)
2. Push an indexing job to the documents queue (instant)
3. Return response to user

A separate worker process pulls jobs from Redis and runs them.
"""

import logging
from typing import Optional

from arq.connections import RedisSettings, ArqRedis, create_pool

from app.core.config import settings

# ============================================================
# Logging Setup
# ============================================================
logger = logging.getLogger(__name__)


# ============================================================
# ARQ Redis Settings (for task queue)
# ============================================================

def get_arq_redis_settings() -> RedisSettings:
    """
    Get Redis settings for ARQ task queue.

    Returns:
        RedisSettings configured from REDIS_URL
    """
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)

    # Connection retry settings
    redis_settings.conn_timeout = 10       # Timeout for initial connection (seconds)
    redis_settings.conn_retries = 5        # Number of retry attempts
    redis_settings.conn_retry_delay = 1    # Delay between retries (seconds)
    return redis_settings


# ============================================================
# ARQ Connection Pool (for enqueueing jobs)
# ============================================================
# This is used by the FastAPI app to add jobs to the queues.
# The worker processes pick them up and execute them.
# ============================================================

_arq_pool: Optional[ArqRedis] = None


async def get_arq_pool() -> ArqRedis:
    """
    Get or create the ARQ Redis pool for enqueueing jobs.

    Usage:
        pool = await get_arq_pool()
        await pool.enqueue_job('index_document', document_id, _queue_name="arq:documents")
    """
    global _arq_pool

    if _arq_pool is None:
        _arq_pool = await create_pool(get_arq_redis_settings())
        logger.info("ARQ Redis pool created")

    return _arq_pool


async def close_arq_pool():
    """Close ARQ Redis pool during shutdown."""
    global _arq_pool

    if _arq_pool is not None:
        await _arq_pool.close()
        _arq_pool = None
        logger.info("ARQ Redis pool closed")


# ============================================================
# Health Check
# ============================================================

async def check_redis_connection() -> bool:
    """
    Check if Redis is reachable.

    Returns:
        True if Redis responds to PING, False otherwise
    """
    try:
        pool = await get_arq_pool()
        response = await pool.ping()
        logger.info("Redis health check: OK")
        return bool(response)
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
