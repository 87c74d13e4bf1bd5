"""
Password utilities for the admin dashboard.
Uses bcrypt for password hashing.
"""
import bcrypt
from trust_site.config import settings


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.
    Used by generate_password_hash.py to produce ADMIN_PASSWORD_HASH.
    """
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, hashed_password: str) -> bool:
    """Return True if ``password`` matches ``hashed_password``; a malformed hash never matches."""
    try:
        return bcrypt.checkpw(
            password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def verify_admin_password(password: str) -> bool:
    """
    Verify the shared admin password against ADMIN_PASSWORD_HASH.

    Raises:
        ValueError: If ADMIN_PASSWORD_HASH is not configured
    """
    if not settings.ADMIN_PASSWORD_HASH:
        raise ValueError("ADMIN_PASSWORD_HASH not configured")

    return verify_password(password, settings.ADMIN_PASSWORD_HASH)
