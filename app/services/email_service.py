"""
Marketing Contacts (Resend)

Keeps the "Marketing" segment in Resend in line with users' marketing
consent. Called only from the email queue jobs, which run one at a time.

Resend allows about 2 requests per second on the free tier, so every call
waits EMAIL_RATE_LIMIT_DELAY_SECONDS first. A job makes at most four calls.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailServiceError(Exception):
    """A Resend call failed; the job should be retried."""
    pass


class MarketingContactsClient:
    """
    Minimal Resend REST client for contacts and segments.

    Args:
        api_key: Resend API key
        base_url: API root, https://api.resend.com by default
        segment_name: Name of the marketing segment (created on demand)
        delay: Seconds to wait before each request
        http_client: Injected client (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.resend.com",
        segment_name: str = "Marketing",
        delay: float = 0.6,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.segment_name = segment_name
        self.delay = delay
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=15,
        )
        self._http.headers["Authorization"] = f"Bearer {api_key}"

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if self.delay:
            await asyncio.sleep(self.delay)
        return await self._http.request(method, path, **kwargs)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        return body.get("message") or body.get("name") or f"HTTP {response.status_code}"

    # ============================================================
    # SEGMENTS
    # ============================================================

    async def find_segment(self) -> Optional[Dict[str, Any]]:
        response = await self._request("GET", "/segments")
        if response.is_error:
            raise EmailServiceError(f"Failed to list segments: {self._error_message(response)}")

        segments = response.json().get("data") or []
        return next((s for s in segments if s.get("name") == self.segment_name), None)

    async def get_or_create_segment(self) -> Dict[str, Any]:
        segment = await self.find_segment()
        if segment is not None:
            return segment

        logger.info(f"Creating {self.segment_name} segment...")
        response = await self._request("POST", "/segments", json={"name": self.segment_name})
        if response.is_error:
            raise EmailServiceError(f"Failed to create segment: {self._error_message(response)}")

        return response.json()

    # ============================================================
    # CONTACTS
    # ============================================================

    async def get_contact_id(self, email: str) -> Optional[str]:
        """Return the contact id, or None if Resend has no such contact."""
        response = await self._request("GET", f"/contacts/{email}")

        if response.status_code == 404:
            return None
        if response.is_error:
            # Treated like a missing contact; creation reports the real error
            logger.error(f"Error getting contact for {email}: {self._error_message(response)}")
            return None

        return response.json().get("id")

    async def create_contact(self, email: str) -> str:
        response = await self._request(
            "POST",
            "/contacts",
            json={"email": email, "unsubscribed": False},
        )
        if response.is_error:
            raise EmailServiceError(f"Failed to create contact: {self._error_message(response)}")

        contact_id = response.json().get("id")
        if not contact_id:
            raise EmailServiceError("Failed to get or create contact")

        logger.info(f"Contact created: {contact_id}")
        return contact_id

    # ============================================================
    # JOB OPERATIONS
    # ============================================================

    async def add_to_marketing_segment(self, email: str) -> None:
        """
        Add a contact to the marketing segment.

        Creates the segment and the contact when they don't exist.
        """
        segment = await self.get_or_create_segment()

        contact_id = await self.get_contact_id(email)
        if contact_id is None:
            contact_id = await self.create_contact(email)

        response = await self._request(
            "POST",
            f"/contacts/{contact_id}/segments/{segment['id']}",
        )
        if response.is_error:
            raise EmailServiceError(
                f"Failed to add contact to segment: {self._error_message(response)}"
            )

        logger.info(f"Contact {contact_id} added to {self.segment_name} segment")

    async def remove_from_marketing_segment(self, email: str) -> bool:
        """
        Remove a contact from the marketing segment.

        Returns False when there was nothing to remove (no segment or no
        contact), which counts as success.
        """
        segment = await self.find_segment()
        if segment is None:
            logger.info(f"{self.segment_name} segment not found, nothing to remove")
            return False

        response = await self._request(
            "DELETE",
            f"/contacts/{email}/segments/{segment['id']}",
        )

        if response.status_code == 404:
            logger.info(f"Contact {email} not found, nothing to remove")
            return False
        if response.is_error:
            raise EmailServiceError(
                f"Failed to remove contact from segment: {self._error_message(response)}"
            )

        logger.info(f"Contact {email} removed from {self.segment_name} segment")
        return True


def get_marketing_contacts_client() -> Optional[MarketingContactsClient]:
    """Build a client from settings, or None when Resend isn't configured."""
    if not settings.RESEND_API_KEY:
        return None

    return MarketingContactsClient(
        api_key=settings.RESEND_API_KEY,
        base_url=settings.RESEND_API_URL,
        segment_name=settings.MARKETING_SEGMENT_NAME,
        delay=settings.EMAIL_RATE_LIMIT_DELAY_SECONDS,
    )
