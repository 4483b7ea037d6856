"""Password hashing and verification.

Stored customer passwords come in three historical formats: bcrypt hashes,
base64-encoded plaintext and raw plaintext. Verification walks an ordered
list of verifiers and the first one that applies to the stored value decides
the outcome; the remaining verifiers are never consulted. New passwords are
always hashed with bcrypt.
"""
import base64
import binascii
import hmac
import logging
from typing import Optional, Sequence

import bcrypt

logger = logging.getLogger(__name__)

BCRYPT_PREFIXES = ('$2a$', '$2b$', '$2y$')
BCRYPT_MAX_PASSWORD_BYTES = 72

class CredentialVerifier:
    """One stored-password format."""

    name = 'base'

    def applies(self, stored: str) -> bool:
        """Whether this verifier owns the stored value."""
        raise NotImplementedError

    def verify(self, stored: str, candidate: str) -> bool:
        """Check a candidate password against the stored value."""
        raise NotImplementedError

class BcryptVerifier(CredentialVerifier):
    name = 'bcrypt'

    def applies(self, stored: str) -> bool:
        return stored.startswith(BCRYPT_PREFIXES)

    def verify(self, stored: str, candidate: str) -> bool:
        try:
            return bcrypt.checkpw(candidate.encode('utf-8'), stored.encode('utf-8'))
        except ValueError as e:
            # Malformed hash or over-long candidate
            logger.warning(f"bcrypt verification error: {e}")
            return False

class Base64Verifier(CredentialVerifier):
    name = 'base64'

    def _decode(self, stored: str) -> Optional[bytes]:
        try:
            return base64.b64decode(stored, validate=True)
        except (binascii.Error, ValueError):
            return None

    def applies(self, stored: str) -> bool:
        return self._decode(stored) is not None

    def verify(self, stored: str, candidate: str) -> bool:
        decoded = self._decode(stored)
        if decoded is None:
            return False
        return hmac.compare_digest(decoded, candidate.encode('utf-8'))

class PlaintextVerifier(CredentialVerifier):
    name = 'plaintext'

    def applies(self, stored: str) -> bool:
        return True

    def verify(self, stored: str, candidate: str) -> bool:
        return hmac.compare_digest(stored.encode('utf-8'), candidate.encode('utf-8'))

LEGACY_VERIFIERS = (BcryptVerifier(), Base64Verifier(), PlaintextVerifier())
STRONG_VERIFIERS = (BcryptVerifier(),)

def verify_password(
    stored: Optional[str],
    candidate: Optional[str],
    verifiers: Sequence[CredentialVerifier] = LEGACY_VERIFIERS
) -> bool:
    """Verify a candidate password against a stored credential.

    Args:
        stored: Stored password value (hash, base64 or plaintext)
        candidate: Password supplied by the user
        verifiers: Ordered verifiers, the first applicable one decides

    Returns:
        True if the candidate matches
    """
    if not stored or candidate is None:
        return False

    for verifier in verifiers:
        if verifier.applies(stored):
            return verifier.verify(stored, candidate)

    return False

def hash_password(plain: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt.

    Args:
        plain: Password to hash
        rounds: bcrypt cost factor, defaults to the configured bcrypt_rounds

    Raises:
        ValueError: If the password exceeds bcrypt's 72 byte limit
    """
    if rounds is None:
        from config import settings_conf
        rounds = settings_conf['bcrypt_rounds']

    encoded = plain.encode('utf-8')
    if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")

    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode('utf-8')
