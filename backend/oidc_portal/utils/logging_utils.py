"""Logging utilities for PII redaction and secure logging."""

import hashlib
import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")


def redact_email(email: Optional[str]) -> str:
    """
    Redact email address for logging while maintaining uniqueness.

    Args:
        email: Email address to redact

    Returns:
        Redacted email in format: u***@example.com or hash:abc123 for short local parts
        Returns 'N/A' if email is None, empty, or not an address at all

    Examples:
        >>> redact_email("user@example.com")
        'u***@example.com'
        >>> redact_email(None)
        'N/A'
    """
    if not email or "@" not in email:
        return "N/A"

    local, domain = email.split("@", 1)

    # If local part is too short (< 3 chars), use hash for privacy
    if len(local) < 3:
        email_hash = hashlib.sha256(email.encode()).hexdigest()[:6]
        return f"hash:{email_hash}@{domain}"

    # Show first char + *** + domain
    return f"{local[0]}***@{domain}"


def redact_emails_in_text(text: str) -> str:
    """Redact every email address embedded in a free-form string."""
    return EMAIL_PATTERN.sub(lambda match: redact_email(match.group(0)), text)
