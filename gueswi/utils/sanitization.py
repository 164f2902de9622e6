import html
from typing import Optional


def validate_and_sanitize_input(value: Optional[str], max_length: int = 5000) -> Optional[str]:
    """
    Validate and sanitize free text before storage.

    Args:
        value: Input string to validate
        max_length: Maximum allowed length

    Returns:
        Escaped, trimmed string (None stays None)

    Raises:
        ValueError: If input is too long
    """
    if value is None:
        return None

    value = str(value).strip()

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    return html.escape(value, quote=True)
