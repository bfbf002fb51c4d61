"""
Email Tasks

Marketing segment membership jobs. They run on the email queue with a
single worker slot; the client paces its own Resend calls.
"""

import logging
from typing import Any, Dict, Optional

from app.services.email_service import MarketingContactsClient, get_marketing_contacts_client

logger = logging.getLogger(__name__)


def _client_from(ctx: Dict[str, Any]) -> Optional[MarketingContactsClient]:
    if "marketing_contacts" in ctx:
        return ctx["marketing_contacts"]
    return get_marketing_contacts_client()


async def add_to_marketing_segment(ctx: Dict[str, Any], email: str) -> Dict[str, Any]:
    """
    Add a user to the marketing segment.

    Errors propagate so ARQ retries the job.
    """
    logger.info(
        f"Adding {email} to marketing segment "
        f"(job: {ctx.get('job_id', 'unknown')}, attempt: {ctx.get('job_try', 1)})"
    )

    client = _client_from(ctx)
    if client is None:
        logger.info("RESEND_API_KEY not set, skipping marketing segment update")
        return {"success": True, "skipped": True}

    await client.add_to_marketing_segment(email)
    return {"success": True, "email": email}


async def remove_from_marketing_segment(ctx: Dict[str, Any], email: str) -> Dict[str, Any]:
    """Remove a user from the marketing segment. A missing contact is success."""
    logger.info(
        f"Removing {email} from marketing segment "
        f"(job: {ctx.get('job_id', 'unknown')}, attempt: {ctx.get('job_try', 1)})"
    )

    client = _client_from(ctx)
    if client is None:
        logger.info("RESEND_API_KEY not set, skipping marketing segment update")
        return {"success": True, "skipped": True}

    removed = await client.remove_from_marketing_segment(email)
    return {"success": True, "email": email, "removed": removed}
