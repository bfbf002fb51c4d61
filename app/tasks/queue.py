"""
Job Scheduling

Helpers the API uses to put work on the ARQ queues. Every job gets a
deterministic _job_id, so scheduling the same work twice while the first
job is queued or running is a no-op: ARQ returns None instead of a Job.
The documents queue also keeps results for an hour, which holds the id
for that long; the email queue keeps none, so a user can opt in and out
repeatedly.
"""

import logging
from typing import Optional
from uuid import UUID

from arq.connections import ArqRedis
from arq.jobs import Job

from app.core.config import settings
from app.db.redis import get_arq_pool

logger = logging.getLogger(__name__)


def index_job_id(document_id: UUID | str) -> str:
    return f"index-{document_id}"


def add_marketing_job_id(email: str) -> str:
    return f"add-marketing-{email.lower()}"


def remove_marketing_job_id(email: str) -> str:
    return f"remove-marketing-{email.lower()}"


async def _enqueue(
    function: str,
    job_id: str,
    queue_name: str,
    *args,
    pool: Optional[ArqRedis] = None,
) -> Optional[Job]:
    pool = pool or await get_arq_pool()
    job = await pool.enqueue_job(
        function,
        *args,
        _job_id=job_id,
        _queue_name=queue_name,
    )

    if job is None:
        logger.info(f"Job {job_id} already scheduled, skipping")
    else:
        logger.info(f"Enqueued {function} as {job_id} on {queue_name}")

    return job


# ============================================================
# DOCUMENTS QUEUE
# ============================================================

async def enqueue_index_document(
    document_id: UUID | str,
    pool: Optional[ArqRedis] = None
) -> Optional[Job]:
    """Schedule remote indexing of an uploaded document."""
    return await _enqueue(
        "index_document",
        index_job_id(document_id),
        settings.DOCUMENTS_QUEUE_NAME,
        str(document_id),
        pool=pool,
    )


# ============================================================
# EMAIL QUEUE
# ============================================================

async def enqueue_add_to_marketing_segment(
    email: str,
    pool: Optional[ArqRedis] = None
) -> Optional[Job]:
    return await _enqueue(
        "add_to_marketing_segment",
        add_marketing_job_id(email),
        settings.EMAIL_QUEUE_NAME,
        email,
        pool=pool,
    )


async def enqueue_remove_from_marketing_segment(
    email: str,
    pool: Optional[ArqRedis] = None
) -> Optional[Job]:
    return await _enqueue(
        "remove_from_marketing_segment",
        remove_marketing_job_id(email),
        settings.EMAIL_QUEUE_NAME,
        email,
        pool=pool,
    )
