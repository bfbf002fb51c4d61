"""
Marketing segment job tests

Resend is faked with httpx.MockTransport; every request is recorded as
(method, path).
"""

import httpx
import pytest

from app.services.email_service import EmailServiceError, MarketingContactsClient
from app.tasks.email_tasks import add_to_marketing_segment, remove_from_marketing_segment

EMAIL = "jane@example.com"


class FakeResend:
    """Routes requests to canned responses and records them."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []
        self.headers = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        self.calls.append(key)
        self.headers.append(request.headers)
        status, body = self.routes.get(key, (404, {"message": "Not found"}))
        return httpx.Response(status, json=body)


def _client(resend: FakeResend) -> MarketingContactsClient:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(resend),
        base_url="https://api.resend.com",
    )
    return MarketingContactsClient(api_key="re_test", delay=0, http_client=http_client)


class TestAddToMarketingSegment:

    async def test_creates_segment_and_contact(self):
        resend = FakeResend({
            ("GET", "/segments"): (200, {"data": []}),
            ("POST", "/segments"): (200, {"id": "seg_1", "name": "Marketing"}),
            ("GET", f"/contacts/{EMAIL}"): (404, {"message": "Contact not found"}),
            ("POST", "/contacts"): (200, {"id": "con_1"}),
            ("POST", "/contacts/con_1/segments/seg_1"): (200, {}),
        })

        result = await add_to_marketing_segment({"marketing_contacts": _client(resend)}, EMAIL)

        assert result == {"success": True, "email": EMAIL}
        assert resend.calls == [
            ("GET", "/segments"),
            ("POST", "/segments"),
            ("GET", f"/contacts/{EMAIL}"),
            ("POST", "/contacts"),
            ("POST", "/contacts/con_1/segments/seg_1"),
        ]
        assert resend.headers[0]["authorization"] == "Bearer re_test"

    async def test_reuses_existing_segment_and_contact(self):
        resend = FakeResend({
            ("GET", "/segments"): (200, {"data": [{"id": "seg_1", "name": "Marketing"}]}),
            ("GET", f"/contacts/{EMAIL}"): (200, {"id": "con_1"}),
            ("POST", "/contacts/con_1/segments/seg_1"): (200, {}),
        })

        await add_to_marketing_segment({"marketing_contacts": _client(resend)}, EMAIL)

        assert ("POST", "/segments") not in resend.calls
        assert ("POST", "/contacts") not in resend.calls

    async def test_failure_propagates_for_retry(self):
        resend = FakeResend({
            ("GET", "/segments"): (200, {"data": [{"id": "seg_1", "name": "Marketing"}]}),
            ("GET", f"/contacts/{EMAIL}"): (200, {"id": "con_1"}),
            ("POST", "/contacts/con_1/segments/seg_1"): (429, {"message": "Too many requests"}),
        })

        with pytest.raises(EmailServiceError, match="Too many requests"):
            await add_to_marketing_segment({"marketing_contacts": _client(resend)}, EMAIL)

    async def test_skipped_without_api_key(self):
        result = await add_to_marketing_segment({"marketing_contacts": None}, EMAIL)

        assert result == {"success": True, "skipped": True}


class TestRemoveFromMarketingSegment:

    async def test_removes_contact(self):
        resend = FakeResend({
            ("GET", "/segments"): (200, {"data": [{"id": "seg_1", "name": "Marketing"}]}),
            ("DELETE", f"/contacts/{EMAIL}/segments/seg_1"): (200, {}),
        })

        result = await remove_from_marketing_segment({"marketing_contacts": _client(resend)}, EMAIL)

        assert result["removed"] is True

    async def test_unknown_contact_is_success(self):
        resend = FakeResend({
            ("GET", "/segments"): (200, {"data": [{"id": "seg_1", "name": "Marketing"}]}),
            ("DELETE", f"/contacts/{EMAIL}/segments/seg_1"): (404, {"message": "Contact not found"}),
        })

        result = await remove_from_marketing_segment({"marketing_contacts": _client(resend)}, EMAIL)

        assert result == {"success": True, "email": EMAIL, "removed": False}

    async def test_missing_segment_makes_no_delete(self):
        resend = FakeResend({("GET", "/segments"): (200, {"data": []})})

        result = await remove_from_marketing_segment({"marketing_contacts": _client(resend)}, EMAIL)

        assert result["removed"] is False
        assert resend.calls == [("GET", "/segments")]
