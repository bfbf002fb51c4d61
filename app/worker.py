"""
ARQ Worker Configuration

Two queues, one worker settings class each:

    DocumentsWorkerSettings   arq:documents   index_document                  max_jobs=5
    EmailWorkerSettings       arq:email       add/remove_from_marketing_...   max_jobs=1

Running the Workers:
-------------------
    # From project root directory
    arq app.worker.DocumentsWorkerSettings
    arq app.worker.EmailWorkerSettings

    # With verbose logging
    arq app.worker.DocumentsWorkerSettings --verbose

Worker Lifecycle:
----------------
1. Worker starts and connects to Redis
2. Worker calls startup() function
3. Worker polls its queue for jobs
4. On SIGTERM/SIGINT the worker stops taking jobs and waits up to
   job_completion_wait seconds for running jobs to finish
5. Worker calls shutdown() function

Jobs are idempotent: each is scheduled under a deterministic job id and
the job bodies skip work that was already done.
"""

import logging
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.monitoring import init_sentry
from app.db.database import close_db
from app.db.redis import get_arq_redis_settings
from app.tasks.document_tasks import index_document
from app.tasks.email_tasks import add_to_marketing_segment, remove_from_marketing_segment

# ============================================================
# Logging Configuration
# ============================================================

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================
# Startup and Shutdown Hooks
# ============================================================

async def startup_documents(ctx: Dict[str, Any]) -> None:
    """
    Called when the documents worker starts.

    The File Search client is built once here and shared by every job.
    """
    logger.info("Documents worker starting up...")
    init_sentry()

    try:
        from app.ai.rag.file_search import get_file_search_client
        ctx["file_search"] = get_file_search_client()
        logger.info("File Search client initialized")
    except Exception as e:
        logger.warning(f"File Search client not initialized: {e}")
        logger.warning("Jobs will build it on first use")

    logger.info("Documents worker ready to process jobs")


async def startup_email(ctx: Dict[str, Any]) -> None:
    """Called when the email worker starts."""
    logger.info("Email worker starting up...")
    init_sentry()

    from app.services.email_service import get_marketing_contacts_client
    ctx["marketing_contacts"] = get_marketing_contacts_client()
    if ctx["marketing_contacts"] is None:
        logger.warning("RESEND_API_KEY not set, email jobs will be skipped")

    logger.info("Email worker ready to process jobs")


async def shutdown(ctx: Dict[str, Any]) -> None:
    """
    Called when a worker shuts down, after in-flight jobs have drained.
    """
    logger.info("ARQ worker shutting down...")

    client = ctx.get("marketing_contacts")
    if client is not None:
        await client.close()

    await close_db()
    logger.info("ARQ worker shutdown complete")


# ============================================================
# Worker Configuration Classes
# ============================================================

def indexing_job_timeout(poll_timeout: Optional[float]) -> Optional[int]:
    """
    ARQ timeout for index_document: the poll timeout plus upload headroom.

    None when polling is unbounded, so ARQ never cancels a job that is
    still waiting on the remote operation.
    """
    if poll_timeout is None:
        return None
    return int(poll_timeout + 120)


class DocumentsWorkerSettings:
    """
    ARQ settings for the documents queue.

    Discovered by ARQ when you run:
        arq app.worker.DocumentsWorkerSettings
    """

    functions = [
        index_document,
    ]

    redis_settings = get_arq_redis_settings()
    queue_name = settings.DOCUMENTS_QUEUE_NAME

    on_startup = startup_documents
    on_shutdown = shutdown

    job_timeout = indexing_job_timeout(settings.RAG_POLL_TIMEOUT_SECONDS)
    keep_result = 3600     # 1 hour, keeps the job id reserved after completion
    max_tries = 3
    retry_delay = 60

    max_jobs = settings.DOCUMENTS_QUEUE_CONCURRENCY
    poll_delay = 0.5
    job_completion_wait = 60
    health_check_interval = 10


class EmailWorkerSettings:
    """
    ARQ settings for the email queue.

    One job at a time: Resend allows ~2 requests/second and each job
    paces its own calls.
    """

    functions = [
        add_to_marketing_segment,
        remove_from_marketing_segment,
    ]

    redis_settings = get_arq_redis_settings()
    queue_name = settings.EMAIL_QUEUE_NAME

    on_startup = startup_email
    on_shutdown = shutdown

    job_timeout = 60
    keep_result = 0        # job ids are reusable as soon as a job finishes
    max_tries = 5
    retry_delay = 30

    max_jobs = settings.EMAIL_QUEUE_CONCURRENCY
    poll_delay = 1.0
    job_completion_wait = 30
    health_check_interval = 10
