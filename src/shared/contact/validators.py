"""Heuristic gates for contact submissions: honeypot, timing and content checks."""

import re
from typing import Any, Mapping, Optional

from src.shared.contact.errors import (
    MalformedRequest,
    SessionExpired,
    SpamContent,
    SuspiciousPattern,
    TooFast,
    TooLong,
    TooShort,
)
from src.shared.contact.schemas import MessagePriority

# Timing window (milliseconds)
MIN_FILL_TIME_MS = 5000
MAX_FILL_TIME_MS = 30 * 60 * 1000

MIN_MESSAGE_LENGTH = 10
MAX_MESSAGE_LENGTH = 2000

SPAM_KEYWORD_THRESHOLD = 2
SUSPICIOUS_PATTERN_THRESHOLD = 2

SPAM_KEYWORDS = (
    "viagra", "casino", "lottery", "winner", "congratulations",
    "click here", "free money", "make money fast", "work from home",
    "bitcoin", "cryptocurrency", "investment opportunity", "loan",
    "weight loss", "diet pills", "enlargement", "dating",
    "seo services", "website promotion", "backlinks",
)

URGENT_KEYWORDS = ("urgent", "emergency", "asap", "immediately", "critical")
HIGH_KEYWORDS = ("important", "problem", "issue", "error", "bug", "payment")

_REPEATED_CHARACTER = re.compile(r"(.)\1{4,}")
_UPPERCASE_RUN = re.compile(r"[A-Z]{10,}")
_DIGIT_RUN = re.compile(r"\d{10,}")
_URL = re.compile(r"https?://[^\s]+", re.IGNORECASE)

INVALID_SUBMISSION_MESSAGE = "Invalid form submission"


def honeypot_triggered(fields: Mapping[str, Any]) -> bool:
    """True when any decoy field carries a value."""
    for value in fields.values():
        if value is None or value is False:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return True
    return False


def parse_form_start_time(raw: Any) -> int:
    """Parse the client's form-start epoch milliseconds."""
    if raw is None or raw == "" or isinstance(raw, bool):
        raise MalformedRequest(INVALID_SUBMISSION_MESSAGE, reason="missing_form_start_time")
    try:
        return int(float(str(raw).strip()))
    except (TypeError, ValueError, OverflowError):
        raise MalformedRequest(INVALID_SUBMISSION_MESSAGE, reason="invalid_form_start_time")


def validate_submission_timing(form_start_time: Any, now_ms: int) -> int:
    """
    Check the time between form render and submission.

    Returns:
        Elapsed milliseconds (stored as the message's form fill time)

    Raises:
        MalformedRequest if the start time is missing or not a number
        TooFast under 5 seconds, SessionExpired over 30 minutes
    """
    start = parse_form_start_time(form_start_time)
    elapsed = now_ms - start

    if elapsed < MIN_FILL_TIME_MS:
        raise TooFast("Please take more time to fill out the form")

    if elapsed > MAX_FILL_TIME_MS:
        raise SessionExpired("Form session expired. Please refresh and try again.")

    return elapsed


def spam_keyword_score(text: str) -> int:
    lowered = text.lower()
    return sum(1 for keyword in SPAM_KEYWORDS if keyword in lowered)


def suspicious_pattern_score(text: str) -> int:
    """Number of structural anomaly patterns present (0-4)."""
    score = 0
    if _REPEATED_CHARACTER.search(text):
        score += 1
    if _UPPERCASE_RUN.search(text):
        score += 1
    if _DIGIT_RUN.search(text):
        score += 1
    if len(_URL.findall(text)) >= 2:
        score += 1
    return score


def validate_content(name: Optional[str], email: Optional[str], subject: Optional[str], message: Optional[str]) -> None:
    """
    Score submitted text for spam and check the message length.

    Keyword matching runs on lower-cased text; the pattern pass keeps the original
    case so the uppercase-run check can fire.
    """
    full_text = f"{name or ''} {email or ''} {subject or ''} {message or ''}"

    if spam_keyword_score(full_text) >= SPAM_KEYWORD_THRESHOLD:
        raise SpamContent("Message content appears to be spam")

    if suspicious_pattern_score(full_text) >= SUSPICIOUS_PATTERN_THRESHOLD:
        raise SuspiciousPattern("Message content contains suspicious patterns")

    message = message or ""
    if len(message) < MIN_MESSAGE_LENGTH:
        raise TooShort("Message is too short. Please provide more details.")

    if len(message) > MAX_MESSAGE_LENGTH:
        raise TooLong("Message is too long. Please keep it under 2000 characters.")


def compute_priority(subject: str, message: str) -> MessagePriority:
    """Auto-assign priority from subject and message keywords."""
    full_text = f"{subject} {message}".lower()
    if any(keyword in full_text for keyword in URGENT_KEYWORDS):
        return MessagePriority.URGENT
    if any(keyword in full_text for keyword in HIGH_KEYWORDS):
        return MessagePriority.HIGH
    return MessagePriority.MEDIUM
