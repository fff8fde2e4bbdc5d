"""Reusable input validators.

- Email format check for engine callbacks and PDF store requests
- Filename sanitisation for stored PDF artifacts
"""

import re
from typing import Annotated

from pydantic import AfterValidator

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Anything outside letters, digits, "." and "-" is replaced
UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def validate_email(value: str) -> str:
    """Validate email address format.

    The address is only trimmed, never lower-cased: reconciliation
    matches it exactly against the address stored at submit time.

    Raises:
        ValueError: If email is invalid
    """
    if not value:
        raise ValueError("Email is required")

    value = value.strip()

    if len(value) > 254:  # RFC 5321
        raise ValueError("Email address too long")

    if not EMAIL_REGEX.match(value):
        raise ValueError("Valid email is required")

    return value


def sanitize_filename(value: str, default: str = "audit_report.pdf") -> str:
    """Make a client-supplied filename safe to use as a path component.

    Path separators and every other unsafe character become "_", and
    names made only of dots (".", "..") fall back to `default`.
    """
    cleaned = UNSAFE_FILENAME_CHARS.sub("_", value or "")
    if not cleaned.strip("."):
        return default
    return cleaned


Email = Annotated[str, AfterValidator(validate_email)]
