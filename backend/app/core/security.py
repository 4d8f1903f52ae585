# app/core/security.py
import hashlib
import re
from typing import List

import bcrypt

PASSWORD_MIN_LENGTH = 8
_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


def _pre_hash_bytes(password: str) -> bytes:
    """Return the raw SHA-256 digest bytes for the provided password.

    bcrypt only looks at the first 72 bytes of its input, so passwords are
    reduced to a fixed 32-byte digest first.
    """
    return hashlib.sha256(password.encode("utf-8", errors="ignore")).digest()


def hash_password(password: str) -> str:
    """Hash a plain password, returning a salted bcrypt hash string."""
    pre = _pre_hash_bytes(password)
    hashed = bcrypt.hashpw(pre, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    pre = _pre_hash_bytes(plain_password)
    try:
        return bcrypt.checkpw(pre, hashed_password.encode("utf-8"))
    except ValueError:
        return False


def password_problems(password: str) -> List[str]:
    """Return the list of strength rules the password breaks (empty when acceptable)."""
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if not re.search(r"[0-9]", password):
        problems.append("Password must contain at least one number")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not _SPECIAL_CHARS.search(password):
        problems.append("Password must contain at least one special character")
    return problems
