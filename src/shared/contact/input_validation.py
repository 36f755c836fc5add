"""
Input sanitization and field validation for contact submissions.
Strips script/iframe blocks and other injection vectors before any heuristics run.
"""

import re
from typing import Any, Dict, Optional


# Maximum lengths for different input types
MAX_FIELD_LENGTH = 2000
MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 100
MIN_SUBJECT_LENGTH = 5
MAX_SUBJECT_LENGTH = 200

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_IFRAME_BLOCK = re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE)
_JAVASCRIPT_URI = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_DATA_HTML_URI = re.compile(r"data:text/html", re.IGNORECASE)

_DANGEROUS_PATTERNS = (_SCRIPT_BLOCK, _IFRAME_BLOCK, _JAVASCRIPT_URI, _EVENT_HANDLER, _DATA_HTML_URI)

_PHONE_RE = re.compile(r"^[+]?[\d\s\-()]+$")


def _strip_once(text: str, max_length: int) -> str:
    for pattern in _DANGEROUS_PATTERNS:
        text = pattern.sub("", text)
    return text.strip()[:max_length]


def sanitize_field(value: Any, max_length: int = MAX_FIELD_LENGTH) -> Any:
    """
    Sanitize one submitted value.

    Non-string values are returned untouched. Strings lose script/iframe blocks,
    javascript: and data:text/html URIs and inline on*= handlers, then are
    trimmed and truncated. Stripping repeats until nothing changes, since removing
    one fragment can join its neighbours into a new one ("javajavascript:script:").

    Args:
        value: Raw value from the request body
        max_length: Maximum allowed length

    Returns:
        Sanitized value
    """
    if not isinstance(value, str):
        return value

    cleaned = _strip_once(value, max_length)
    while True:
        again = _strip_once(cleaned, max_length)
        if again == cleaned:
            return cleaned
        cleaned = again


def sanitize_payload(body: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the request body with every string field sanitized."""
    return {key: sanitize_field(value) for key, value in body.items()}


def validate_name(name: str, field_name: str = "Name") -> str:
    """
    Validate a contact name.

    Raises:
        ValueError if validation fails
    """
    if not name or not name.strip():
        raise ValueError(f"{field_name} cannot be empty")

    name = name.strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ValueError(f"{field_name} must be at least {MIN_NAME_LENGTH} characters")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"{field_name} must be no more than {MAX_NAME_LENGTH} characters")
    return name


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """Phone is optional; when given it may hold digits, spaces, dashes, parentheses and a leading +."""
    if phone is None:
        return None
    phone = phone.strip()
    if not phone:
        return None
    if not _PHONE_RE.match(phone):
        raise ValueError("Please enter a valid phone number")
    return phone


def validate_subject(subject: str) -> str:
    if not subject or not subject.strip():
        raise ValueError("Subject cannot be empty")
    subject = subject.strip()
    if len(subject) < MIN_SUBJECT_LENGTH:
        raise ValueError(f"Subject must be at least {MIN_SUBJECT_LENGTH} characters")
    if len(subject) > MAX_SUBJECT_LENGTH:
        raise ValueError(f"Subject must be no more than {MAX_SUBJECT_LENGTH} characters")
    return subject
