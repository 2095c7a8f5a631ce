"""
security.py – Password hashing and session token generation
Hashes are produced by werkzeug's PBKDF2 implementation and stored in the form
"pbkdf2:<digest>:<iterations>$<salt>$<hex key>". The salt alphabet is
alphanumeric and the key is hex, so "$" never appears inside either value.
"""

import logging
import secrets

from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger(__name__)

DEFAULT_METHOD      = "pbkdf2:sha512:100000"
DEFAULT_SALT_LENGTH = 32
SESSION_TOKEN_BYTES = 32


def hash_password(password: str, method: str = DEFAULT_METHOD,
                  salt_length: int = DEFAULT_SALT_LENGTH) -> str:
    """Return the stored form of a password, salted freshly on every call."""
    return generate_password_hash(password, method=method, salt_length=salt_length)


def verify_password(password: str, stored_hash) -> bool:
    """
    Check a password against its stored form in constant time.
    Anything that is not a well-formed stored hash counts as a mismatch.
    """
    if not isinstance(stored_hash, str) or not isinstance(password, str):
        return False
    try:
        return check_password_hash(stored_hash, password)
    except ValueError as exc:
        logger.warning(f"Rejecting malformed password hash: {exc}")
        return False


def generate_session_id() -> str:
    """256 random bits as 64 hex characters."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)
