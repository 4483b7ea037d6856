"""Tests for password hashing and verification."""

import base64

import bcrypt
import pytest

from auth.credentials import (
    verify_password,
    hash_password,
    LEGACY_VERIFIERS,
    STRONG_VERIFIERS,
    BcryptVerifier,
    Base64Verifier,
    PlaintextVerifier
)

def _bcrypt(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")

def test_bcrypt_match():
    """Test a bcrypt stored credential accepts the right password only."""
    stored = _bcrypt("Secret123")
    assert verify_password(stored, "Secret123")
    assert not verify_password(stored, "secret123")

@pytest.mark.parametrize("prefix", ["$2a$", "$2y$"])
def test_bcrypt_prefix_variants(prefix):
    """Test $2a$ and $2y$ hashes are handled by bcrypt."""
    stored = prefix + _bcrypt("Secret123")[4:]
    assert BcryptVerifier().applies(stored)
    assert verify_password(stored, "Secret123")

def test_malformed_bcrypt_does_not_fall_through():
    """Test a bcrypt-prefixed value is never compared as plaintext."""
    stored = "$2b$not-a-real-hash"
    assert not verify_password(stored, stored)

def test_base64_match():
    """Test a base64 stored credential compares the decoded bytes."""
    stored = base64.b64encode(b"Secret123").decode("ascii")
    assert verify_password(stored, "Secret123")
    assert not verify_password(stored, stored)

def test_base64_decodable_plaintext_is_decided_by_base64():
    """Test a stored value that decodes as base64 never matches as plaintext."""
    stored = "abcd"
    assert Base64Verifier().applies(stored)
    assert not verify_password(stored, "abcd")

def test_plaintext_match():
    """Test plaintext stored credentials that are not valid base64."""
    assert verify_password("Secret123", "Secret123")
    assert verify_password("hello!", "hello!")
    assert not verify_password("hello!", "hello")

@pytest.mark.parametrize("stored", [None, ""])
def test_empty_stored_value_never_matches(stored):
    """Test missing credentials never verify."""
    assert not verify_password(stored, "")
    assert not verify_password(stored, "anything")

def test_missing_candidate_never_matches():
    """Test a None candidate never verifies."""
    assert not verify_password("Secret123", None)

def test_strong_verifiers_reject_legacy_formats():
    """Test admin verification only accepts bcrypt."""
    encoded = base64.b64encode(b"Secret123").decode("ascii")
    assert not verify_password("Secret123", "Secret123", STRONG_VERIFIERS)
    assert not verify_password(encoded, "Secret123", STRONG_VERIFIERS)
    assert verify_password(_bcrypt("Secret123"), "Secret123", STRONG_VERIFIERS)

def test_legacy_verifier_order():
    """Test bcrypt is consulted before base64 and plaintext last."""
    assert [type(v) for v in LEGACY_VERIFIERS] == [BcryptVerifier, Base64Verifier, PlaintextVerifier]

def test_hash_password_produces_bcrypt():
    """Test new passwords are always stored as bcrypt."""
    stored = hash_password("Secret123", rounds=4)
    assert stored.startswith("$2b$04$")
    assert verify_password(stored, "Secret123")
    assert stored != hash_password("Secret123", rounds=4)

def test_hash_password_rejects_long_passwords():
    """Test passwords beyond bcrypt's 72 byte limit are refused."""
    with pytest.raises(ValueError):
        hash_password("x" * 73, rounds=4)
