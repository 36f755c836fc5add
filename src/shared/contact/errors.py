"""Rejection types raised by the contact submission pipeline."""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ContactRejection(Exception):
    """A gate refused the submission. Rendered as {success: false, message}."""
    status_code = 400
    reason = "rejected"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if reason:
            self.reason = reason

    def to_content(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message}

    def headers(self) -> Dict[str, str]:
        return {}


class MalformedRequest(ContactRejection):
    reason = "malformed_request"


class TooFast(ContactRejection):
    reason = "too_fast"


class SessionExpired(ContactRejection):
    reason = "session_expired"


class SpamContent(ContactRejection):
    reason = "spam_content"


class SuspiciousPattern(ContactRejection):
    reason = "suspicious_pattern"


class TooShort(ContactRejection):
    reason = "too_short"


class TooLong(ContactRejection):
    reason = "too_long"


class CaptchaFailed(ContactRejection):
    reason = "captcha_failed"


class CaptchaServiceError(ContactRejection):
    status_code = 500
    reason = "captcha_service_error"


class RateLimited(ContactRejection):
    """One of the submission rate limiters is exhausted or blocked."""
    status_code = 429
    reason = "rate_limited"

    def __init__(self, ms_before_next: int, scope: str, now: float,
                 message: str = "Too many contact attempts. Please try again later."):
        super().__init__(message)
        self.ms_before_next = max(int(ms_before_next), 0)
        self.scope = scope
        self.blocked_until = datetime.fromtimestamp(now + self.ms_before_next / 1000, tz=timezone.utc)

    @property
    def retry_after(self) -> int:
        """Whole seconds until the next allowed attempt, never below 1."""
        return max(1, math.ceil(self.ms_before_next / 1000))

    def to_content(self) -> Dict[str, Any]:
        content = super().to_content()
        content["retryAfter"] = self.retry_after
        content["blockedUntil"] = self.blocked_until.isoformat().replace("+00:00", "Z")
        return content

    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after)}
