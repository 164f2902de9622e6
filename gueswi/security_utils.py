"""
Security utilities
Password hashing, signed session tokens and filename hygiene
"""

import logging
import os
import re
import secrets
from typing import Any, Optional

# Input sanitization
import bleach

# Token generation and validation
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

# Password hashing
from passlib.context import CryptContext

from .config import SECRET_KEY, SESSION_MAX_AGE

logger = logging.getLogger(__name__)

SESSION_SALT = "gueswi-session"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_session_serializer = URLSafeTimedSerializer(SECRET_KEY, salt=SESSION_SALT)


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# TOKEN GENERATION & VALIDATION
# ============================================================================


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def generate_sip_password(length: int = 12) -> str:
    """Random alphanumeric SIP secret"""
    alphabet = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def create_session_token(user_id: str) -> str:
    """Sign a session payload for the session cookie"""
    return _session_serializer.dumps({"uid": user_id})


def read_session_token(token: Optional[str], max_age: int = SESSION_MAX_AGE) -> Optional[str]:
    """
    Return the user id stored in a session cookie.

    None when the cookie is missing, tampered with or expired.
    """
    if not token:
        return None
    try:
        data: dict[str, Any] = _session_serializer.loads(token, max_age=max_age)
    except SignatureExpired:
        logger.debug("⏰ Session token expired")
        return None
    except BadSignature:
        logger.warning("⚠️ Session token with invalid signature")
        return None
    return data.get("uid") if isinstance(data, dict) else None


# ============================================================================
# INPUT HYGIENE
# ============================================================================


def strip_html(text: Optional[str]) -> Optional[str]:
    """Remove every HTML tag, keeping the text content"""
    if text is None:
        return None
    return bleach.clean(text, tags=[], attributes={}, strip=True)


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal and other attacks

    Args:
        filename: Original filename

    Returns:
        Safe filename
    """
    # Remove path components
    filename = os.path.basename(filename)

    # Remove or replace dangerous characters
    filename = re.sub(r"[^\w\s\-\.]", "", filename)

    # Remove leading/trailing dots and spaces
    filename = filename.strip(". ")

    # Limit length
    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[: 255 - len(ext)] + ext

    # Ensure filename is not empty
    if not filename:
        filename = f"file_{generate_secure_token(8)}"

    return filename


def generate_short_id(length: int = 9) -> str:
    """Random lowercase base36 suffix for display ids (pbx_, ivr_, call_)"""
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    return "".join(secrets.choice(alphabet) for _ in range(length))
