"""
Default password hashing and verification.

Host applications normally supply their own ``verify_password(stored,
candidate)`` callable to :class:`.authenticate.Authenticator`; this module
provides a salted hash for applications that do not.
"""

import hmac
import logging
import secrets
import hashlib
from base64 import b64encode, b64decode
import binascii

logger = logging.getLogger(__name__)

SALT_BYTES = 8
ITERATIONS = 100_000


def _hash_salt_and_password(salt: bytes, password: str) -> bytes:
    return hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt,
                               ITERATIONS)


def hash_password(password: str) -> str:
    """Generate a secure hash of a password."""
    salt = secrets.token_bytes(SALT_BYTES)
    hashed = _hash_salt_and_password(salt, password)
    return b64encode(salt + hashed).decode('ascii')


def check_password(stored: str, password: str) -> bool:
    """Check a password against a hash produced by :func:`hash_password`."""
    try:
        decoded = b64decode(stored.encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        logger.debug('Stored password hash is not in the expected format')
        return False
    salt = decoded[:SALT_BYTES]
    enc_hashed = decoded[SALT_BYTES:]
    if len(salt) < SALT_BYTES or not enc_hashed:
        return False
    return hmac.compare_digest(_hash_salt_and_password(salt, password),
                               enc_hashed)
