"""Tests for signed bearer tokens and single-use tokens"""

import asyncio
from datetime import timedelta

import jwt
import pytest

from apps_auth.models.tokens import VerifyType
from apps_auth.services.exceptions import InvalidTokenError
from apps_auth.services.token_service import TokenDomain

NEW_ACCOUNT = VerifyType.NEW_ACCOUNT.value
PASSWORD_CHANGE = VerifyType.PASSWORD_CHANGE.value


class TestSignedTokens:
    def test_round_trip_adds_domain_claims(self, token_service):
        token = token_service.generate(TokenDomain.END_USER, {"userId": "u-1", "appId": 3}, 60)
        claims = token_service.verify(token, TokenDomain.END_USER)

        assert claims["userId"] == "u-1"
        assert claims["appId"] == 3
        assert claims["iss"] == "mspk-apps-public"
        assert claims["aud"] == "mspk-apps-end-users"
        assert claims["typ"] == "access"

    def test_token_from_another_domain_is_rejected(self, token_service):
        token = token_service.generate(TokenDomain.END_USER, {"userId": "u-1"}, 60)

        with pytest.raises(InvalidTokenError):
            token_service.verify(token, TokenDomain.DEVELOPER)
        with pytest.raises(InvalidTokenError):
            token_service.verify(token, TokenDomain.CPANEL)

    def test_expired_token_is_rejected(self, token_service):
        token = token_service.generate(TokenDomain.DEVELOPER, {"userId": 1}, -10)

        with pytest.raises(InvalidTokenError) as exc:
            token_service.verify(token, TokenDomain.DEVELOPER)
        assert exc.value.message == "Invalid token"
        assert exc.value.status_code == 401

    def test_tampered_token_is_rejected(self, token_service):
        token = token_service.generate(TokenDomain.DEVELOPER, {"userId": 1}, 60)
        forged = jwt.encode(
            dict(jwt.decode(token, options={"verify_signature": False}), userId=2),
            "wrong-secret",
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            token_service.verify(forged, TokenDomain.DEVELOPER)

    def test_missing_token_is_rejected(self, token_service):
        with pytest.raises(InvalidTokenError):
            token_service.verify(None, TokenDomain.END_USER)

    def test_refresh_and_access_are_not_interchangeable(self, token_service):
        pair = token_service.generate_pair(TokenDomain.DEVELOPER, {"userId": 1}, 60, 3600)

        assert token_service.verify(pair.refresh_token, TokenDomain.DEVELOPER, refresh=True)["typ"] == "refresh"
        with pytest.raises(InvalidTokenError):
            token_service.verify(pair.refresh_token, TokenDomain.DEVELOPER)
        with pytest.raises(InvalidTokenError):
            token_service.verify(pair.access_token, TokenDomain.DEVELOPER, refresh=True)

    def test_refresh_tokens_are_unique(self, token_service):
        first = token_service.generate(TokenDomain.CPANEL, {"developerId": 1}, 60, refresh=True)
        second = token_service.generate(TokenDomain.CPANEL, {"developerId": 1}, 60, refresh=True)
        assert first != second


class TestSingleUseTokens:
    async def test_token_redeems_once(self, token_service):
        token = await token_service.issue_single_use("end_user", "u-1", NEW_ACCOUNT, timedelta(hours=1), app_id=1)

        assert len(token) == 64
        record = await token_service.redeem_single_use(token, "end_user", [NEW_ACCOUNT])
        assert record is not None
        assert record.subject_id == "u-1"
        assert record.used

        assert await token_service.redeem_single_use(token, "end_user", [NEW_ACCOUNT]) is None

    async def test_peek_does_not_consume(self, token_service):
        token = await token_service.issue_single_use("end_user", "u-1", PASSWORD_CHANGE, timedelta(hours=1))

        assert await token_service.peek_single_use(token, "end_user", [PASSWORD_CHANGE]) is not None
        assert await token_service.peek_single_use(token, "end_user", [PASSWORD_CHANGE]) is not None
        assert await token_service.redeem_single_use(token, "end_user", [PASSWORD_CHANGE]) is not None
        assert await token_service.peek_single_use(token, "end_user", [PASSWORD_CHANGE]) is None

    async def test_expired_token_cannot_be_redeemed(self, token_service):
        token = await token_service.issue_single_use("end_user", "u-1", NEW_ACCOUNT, timedelta(seconds=-5))
        assert await token_service.redeem_single_use(token, "end_user", [NEW_ACCOUNT]) is None

    async def test_wrong_purpose_or_subject_type_is_rejected(self, token_service):
        token = await token_service.issue_single_use("developer", 7, NEW_ACCOUNT, timedelta(hours=1))

        assert await token_service.redeem_single_use(token, "developer", [PASSWORD_CHANGE]) is None
        assert await token_service.redeem_single_use(token, "end_user", [NEW_ACCOUNT]) is None
        # Still usable for its real purpose
        assert await token_service.redeem_single_use(token, "developer", [NEW_ACCOUNT]) is not None

    async def test_payload_is_kept(self, token_service):
        token = await token_service.issue_single_use(
            "end_user", "u-1", VerifyType.PROFILE_UPDATE.value, timedelta(hours=1),
            payload={"email": "new@example.com"},
        )
        record = await token_service.redeem_single_use(token, "end_user", [VerifyType.PROFILE_UPDATE.value])
        assert record.payload == {"email": "new@example.com"}

    async def test_invalidate_keeps_the_excepted_token(self, token_service):
        keep = await token_service.issue_single_use("end_user", "u-1", PASSWORD_CHANGE, timedelta(hours=1))
        drop = await token_service.issue_single_use("end_user", "u-1", PASSWORD_CHANGE, timedelta(hours=1))
        other_user = await token_service.issue_single_use("end_user", "u-2", PASSWORD_CHANGE, timedelta(hours=1))

        await token_service.invalidate_single_use("end_user", "u-1", PASSWORD_CHANGE, except_token=keep)

        assert await token_service.peek_single_use(keep, "end_user", [PASSWORD_CHANGE]) is not None
        assert await token_service.peek_single_use(drop, "end_user", [PASSWORD_CHANGE]) is None
        assert await token_service.peek_single_use(other_user, "end_user", [PASSWORD_CHANGE]) is not None

    async def test_concurrent_redeems_have_one_winner(self, token_service):
        token = await token_service.issue_single_use("end_user", "u-1", NEW_ACCOUNT, timedelta(hours=1))

        results = await asyncio.gather(*[
            token_service.redeem_single_use(token, "end_user", [NEW_ACCOUNT]) for _ in range(5)
        ])
        assert len([r for r in results if r is not None]) == 1

    async def test_empty_token_is_rejected(self, token_service):
        assert await token_service.redeem_single_use("", "end_user", [NEW_ACCOUNT]) is None
        assert await token_service.peek_single_use(None, "end_user", [NEW_ACCOUNT]) is None
