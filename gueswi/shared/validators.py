"""Shared validation utilities"""

import re
from datetime import date, datetime, timezone
from typing import Optional

EXTENSION_NUMBER_PATTERN = re.compile(r"\d{2,10}")
TIME_PATTERN = re.compile(r"([01]\d|2[0-3]):[0-5]\d")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")


def validate_email(email: Optional[str]) -> str:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email is blank or its format is invalid
    """
    if not email or not email.strip():
        raise ValueError("Email is required")

    email = email.strip().lower()

    if not EMAIL_PATTERN.fullmatch(email):
        raise ValueError("Invalid email format")

    return email


def validate_extension_number(number: str) -> str:
    """Extension numbers are 2 to 10 digits"""
    number = (number or "").strip()
    if not EXTENSION_NUMBER_PATTERN.fullmatch(number):
        raise ValueError("Extension number must be 2-10 digits")
    return number


def validate_hhmm(value: str) -> str:
    """Validate a 24h HH:MM wall-clock time"""
    if not isinstance(value, str) or not TIME_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
    return value


def parse_date_param(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO date or datetime query parameter into a naive datetime.

    Raises:
        ValueError: If the value is not ISO formatted
    """
    if not value:
        return None
    value = value.strip()
    if len(value) == 10:
        return datetime.combine(date.fromisoformat(value), datetime.min.time())
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        # Stored timestamps are naive UTC
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
