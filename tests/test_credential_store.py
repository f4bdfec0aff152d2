"""Tests for password hashing and credential generation"""

import re

from apps_auth.services.credential_store import CredentialStore


def test_hash_password_is_salted(credential_store):
    first = credential_store.hash_password("secret-pass")
    second = credential_store.hash_password("secret-pass")

    assert first != second
    assert credential_store.verify_password("secret-pass", first)
    assert credential_store.verify_password("secret-pass", second)


def test_verify_password_rejects_wrong_password(credential_store):
    hashed = credential_store.hash_password("secret-pass")
    assert not credential_store.verify_password("other-pass", hashed)


def test_verify_password_never_matches_missing_or_malformed_hash(credential_store):
    assert not credential_store.verify_password("secret-pass", None)
    assert not credential_store.verify_password("secret-pass", "")
    assert not credential_store.verify_password("secret-pass", "not-a-bcrypt-hash")
    assert not credential_store.verify_password("", credential_store.hash_password("secret-pass"))


def test_long_passwords_compare_on_first_72_bytes(credential_store):
    base = "x" * 72
    hashed = credential_store.hash_password(base + "tail-one")
    assert credential_store.verify_password(base + "tail-two", hashed)


def test_hash_secret_is_deterministic():
    assert CredentialStore.hash_secret("abc") == CredentialStore.hash_secret("abc")
    assert CredentialStore.hash_secret("abc") != CredentialStore.hash_secret("abd")
    assert len(CredentialStore.hash_secret("abc")) == 64


def test_generated_api_credentials():
    key = CredentialStore.generate_api_key()
    assert re.fullmatch(r"ak_[0-9a-f]{24}", key)
    assert CredentialStore.generate_api_key() != key

    secret = CredentialStore.generate_api_secret()
    assert len(secret) >= 64
    assert CredentialStore.generate_api_secret() != secret


async def test_record_password_history_skips_missing_hash(credential_store, database):
    await credential_store.record_password_history("end_user", "u-1", None, "password_reset")
    await credential_store.record_password_history("end_user", "u-1", "old-hash", "password_reset")

    rows = await database.fetch_all("SELECT * FROM password_history")
    assert len(rows) == 1
    assert rows[0]["old_hash"] == "old-hash"
    assert rows[0]["reason"] == "password_reset"
