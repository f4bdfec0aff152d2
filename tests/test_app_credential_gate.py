"""Tests for app credential checks and app registration"""

import pytest

from apps_auth.db.repositories import AppGroupRepository, DeveloperRepository, PlanRepository
from apps_auth.db.database import db_timestamp
from apps_auth.services.background_tasks import background_manager
from apps_auth.services.exceptions import (
    InvalidCredentialsError,
    MissingCredentialsError,
    NotFoundError,
    PlanInactiveError,
)


async def test_valid_credentials_resolve_context(app_credentials, gate):
    app, secret = app_credentials
    ctx = await gate.verify(app.api_key, secret)

    assert ctx.app_id == app.id
    assert ctx.plan.plan_name == "starter"
    assert ctx.group is None
    assert ctx.group_app_ids == [app.id]
    assert ctx.google_client_id == app.google_client_id


@pytest.mark.parametrize("key, secret", [(None, "s"), ("k", None), ("", ""), (None, None)])
async def test_missing_credentials(gate, key, secret):
    with pytest.raises(MissingCredentialsError) as exc:
        await gate.verify(key, secret)
    assert exc.value.status_code == 401
    assert exc.value.code == "MISSING_CREDENTIALS"


async def test_wrong_key_and_wrong_secret_are_indistinguishable(app_credentials, gate):
    app, secret = app_credentials

    with pytest.raises(InvalidCredentialsError) as wrong_secret:
        await gate.verify(app.api_key, secret + "x")
    with pytest.raises(InvalidCredentialsError) as wrong_key:
        await gate.verify("ak_000000000000000000000000", secret)

    assert wrong_secret.value.message == wrong_key.value.message
    assert wrong_secret.value.status_code == wrong_key.value.status_code == 401


async def test_inactive_plan_is_rejected(credential_store, registry, gate):
    dev = await DeveloperRepository.create("noplan@example.com", "noplan", "No Plan",
                                           credential_store.hash_password("pw-123456"))
    app, secret = await registry.create_app(dev.id, "Planless")

    with pytest.raises(PlanInactiveError):
        await gate.verify(app.api_key, secret)

    await PlanRepository.create(dev.id, "expired", end_date=db_timestamp(days=-1))
    with pytest.raises(PlanInactiveError):
        await gate.verify(app.api_key, secret)

    await PlanRepository.create(dev.id, "current", end_date=db_timestamp(days=30))
    ctx = await gate.verify(app.api_key, secret)
    assert ctx.plan.plan_name == "current"


async def test_usage_is_recorded(app_credentials, gate, database):
    app, secret = app_credentials
    await gate.verify(app.api_key, secret, endpoint="/api/v1/x/auth/login", method="POST", ip_address="10.0.0.1")
    await background_manager.drain()

    rows = await database.fetch_all("SELECT * FROM api_calls WHERE app_id = ?", (app.id,))
    assert len(rows) == 1
    assert rows[0]["endpoint"] == "/api/v1/x/auth/login"
    assert rows[0]["ip_address"] == "10.0.0.1"


async def test_secret_is_stored_hashed(app_credentials, database):
    app, secret = app_credentials
    row = await database.fetch_one("SELECT api_secret_hash FROM apps WHERE id = ?", (app.id,))
    assert row["api_secret_hash"] != secret
    assert len(row["api_secret_hash"]) == 64


async def test_regenerate_secret_revokes_old_one(app_credentials, registry, gate, developer):
    app, old_secret = app_credentials
    _, new_secret = await registry.regenerate_secret(developer.id, app.id)

    assert new_secret != old_secret
    with pytest.raises(InvalidCredentialsError):
        await gate.verify(app.api_key, old_secret)
    assert (await gate.verify(app.api_key, new_secret)).app_id == app.id


async def test_regenerate_secret_requires_ownership(app_credentials, registry, credential_store):
    app, _ = app_credentials
    other = await DeveloperRepository.create("other@example.com", "other", "Other",
                                             credential_store.hash_password("pw-123456"))
    with pytest.raises(NotFoundError):
        await registry.regenerate_secret(other.id, app.id)


async def test_group_context(developer, registry, gate):
    group = await AppGroupRepository.create(
        developer.id, "Suite",
        use_common_password=True,
        use_common_extra_fields=True,
        common_extra_fields=["team"],
        use_common_google_oauth=True,
        common_google_client_id="group-client",
    )
    first, first_secret = await registry.create_app(developer.id, "First", group_id=group.id,
                                                    google_client_id="own-client", extra_fields=["own"])
    second, _ = await registry.create_app(developer.id, "Second", group_id=group.id)

    ctx = await gate.verify(first.api_key, first_secret)
    assert sorted(ctx.group_app_ids) == sorted([first.id, second.id])
    assert ctx.extra_fields == ["team"]
    assert ctx.google_client_id == "group-client"


async def test_create_app_in_foreign_group_is_rejected(developer, registry, credential_store):
    other = await DeveloperRepository.create("other@example.com", "other", "Other",
                                             credential_store.hash_password("pw-123456"))
    group = await AppGroupRepository.create(other.id, "Not yours")

    with pytest.raises(NotFoundError):
        await registry.create_app(developer.id, "Sneaky", group_id=group.id)
