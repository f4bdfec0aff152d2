"""Tests for the Google tokeninfo client, the mailer and the message templates"""

import smtplib
from unittest.mock import MagicMock, patch

import httpx
import pytest

from apps_auth.services.exceptions import InvalidTokenError, ValidationFailedError
from apps_auth.services.google_identity import GoogleTokenVerifier
from apps_auth.services.mailer import Mailer
from apps_auth.templates import emails, pages

TOKENINFO = {
    "sub": "1234567890",
    "email": "Person@Gmail.com",
    "email_verified": "true",
    "name": "Person",
    "aud": "client-abc",
}


def verifier(handler):
    return GoogleTokenVerifier(tokeninfo_url="https://google.test/tokeninfo",
                               transport=httpx.MockTransport(handler))


class TestGoogleTokenVerifier:
    async def test_valid_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=TOKENINFO)

        identity = await verifier(handler).verify("id-token-1", audience="client-abc")

        assert identity.sub == "1234567890"
        assert identity.email == "person@gmail.com"
        assert identity.email_verified is True
        assert seen[0].url.params["id_token"] == "id-token-1"

    async def test_audience_mismatch(self):
        handler = lambda request: httpx.Response(200, json=TOKENINFO)
        with pytest.raises(InvalidTokenError):
            await verifier(handler).verify("id-token-1", audience="another-client")

    async def test_rejected_by_google(self):
        handler = lambda request: httpx.Response(400, json={"error": "invalid_token"})
        with pytest.raises(InvalidTokenError):
            await verifier(handler).verify("id-token-1")

    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(InvalidTokenError):
            await verifier(handler).verify("id-token-1")

    async def test_empty_token(self):
        with pytest.raises(ValidationFailedError):
            await verifier(lambda request: httpx.Response(200, json=TOKENINFO)).verify("")


class TestMailer:
    async def test_disabled_mailer_sends_nothing(self):
        with patch("apps_auth.services.mailer.smtplib.SMTP") as smtp:
            assert await Mailer(enabled=False).send("a@example.com", "Hi", "<p>Hi</p>") is False
        smtp.assert_not_called()

    async def test_send_uses_smtp(self):
        server = MagicMock()
        with patch("apps_auth.services.mailer.smtplib.SMTP") as smtp:
            smtp.return_value.__enter__.return_value = server
            assert await Mailer(enabled=True).send("a@example.com", "Hi", "<p>Hi</p>") is True

        message = server.send_message.call_args[0][0]
        assert message["To"] == "a@example.com"
        assert message["Subject"] == "Hi"

    async def test_smtp_failure_is_reported_not_raised(self):
        with patch("apps_auth.services.mailer.smtplib.SMTP") as smtp:
            smtp.side_effect = smtplib.SMTPConnectError(421, "unavailable")
            assert await Mailer(enabled=True).send("a@example.com", "Hi", "<p>Hi</p>") is False


class TestTemplates:
    def test_values_are_escaped(self):
        subject, html = emails.welcome_verification("<b>App</b>", "https://x.test/verify?token=abc&x=1")

        assert "<b>App</b>" not in html
        assert "&lt;b&gt;App&lt;/b&gt;" in html
        assert "token=abc&amp;x=1" in html
        assert subject

    def test_delete_page_asks_for_password_only_when_needed(self):
        with_password = pages.delete_confirm_page("tok", "My App", password_required=True)
        without_password = pages.delete_confirm_page("tok", "My App", password_required=False)

        assert 'type="password"' in with_password
        assert 'type="password"' not in without_password
