"""Tests for the cPanel side ticket redeem client"""

import json

import httpx
import pytest

from apps_auth.services.cpanel_client import TicketRedeemClient
from apps_auth.services.exceptions import AuthServiceError, TicketRedeemError

DEVELOPER = {"id": 1, "email": "dev@example.com", "name": "Dev One"}


def make_client(handler, max_retries=2):
    return TicketRedeemClient(
        base_url="http://auth.test",
        max_retries=max_retries,
        backoff=0,
        transport=httpx.MockTransport(handler),
    )


async def test_successful_redeem():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": {"developer": DEVELOPER}})

    developer = await make_client(handler).redeem("ticket-1")

    assert developer == DEVELOPER
    assert str(seen[0].url) == "http://auth.test/api/v1/developer/redeem-cpanel-ticket"
    assert json.loads(seen[0].content) == {"token": "ticket-1"}


async def test_server_errors_are_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503, json={"success": False})
        return httpx.Response(200, json={"success": True, "data": {"developer": DEVELOPER}})

    assert await make_client(handler).redeem("ticket-1") == DEVELOPER
    assert calls["n"] == 3


async def test_transport_errors_exhaust_retries():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AuthServiceError) as exc:
        await make_client(handler, max_retries=1).redeem("ticket-1")
    assert exc.value.status_code == 502
    assert exc.value.code == "TICKET_REDEEM_UNAVAILABLE"
    assert calls["n"] == 2


async def test_rejected_ticket_is_not_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(410, json={"success": False, "error": "TICKET_REDEEM_FAILED",
                                         "message": "Ticket is invalid, expired or already used"})

    with pytest.raises(TicketRedeemError) as exc:
        await make_client(handler).redeem("ticket-1")
    assert exc.value.status_code == 401
    assert exc.value.message == "Ticket is invalid, expired or already used"
    assert calls["n"] == 1


async def test_missing_developer_in_response():
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": {}})

    with pytest.raises(AuthServiceError) as exc:
        await make_client(handler).redeem("ticket-1")
    assert exc.value.code == "NO_DEVELOPER_INFO"
