"""Salted password hashing for stored user credentials."""

import hashlib
import hmac
import logging
import os
from typing import Optional

from .config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "pbkdf2_sha256"
SALT_BYTES = 16


def hash_password(
    password: str, iterations: Optional[int] = None, salt: Optional[bytes] = None
) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>`` for ``password``."""
    iterations = iterations or settings.password_hash_iterations
    salt = salt if salt is not None else os.urandom(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algo, iterations, salt_hex, digest_hex = encoded.split("$")
        if algo != ALGORITHM:
            return False
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except (AttributeError, ValueError):
        logger.warning("unreadable password hash encountered")
        return False
    actual = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(actual, expected)
