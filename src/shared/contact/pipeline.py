"""
Abuse-defense pipeline for public contact submissions.

A submission moves through one-way gates:

    RECEIVED -> SANITIZED -> HONEYPOT_CHECKED -> TIMING_CHECKED -> CONTENT_CHECKED
             -> RATE_LIMITED -> CAPTCHA_VERIFIED -> PERSISTED

Any gate may end it early. A filled honeypot ends in SILENTLY_ABSORBED, which the
caller sees as an ordinary success; every other failure raises a ContactRejection
(REJECTED). Nothing is retried within a request.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from src.shared.contact.captcha import CAPTCHA_REQUIRED_MESSAGE, CaptchaVerifier
from src.shared.contact.errors import (
    CaptchaFailed,
    ContactRejection,
    MalformedRequest,
    SpamContent,
    SuspiciousPattern,
)
from src.shared.contact.fingerprint import generate_fingerprint
from src.shared.contact.input_validation import sanitize_payload
from src.shared.contact.rate_limit import ContactRateLimiters
from src.shared.contact.schemas import (
    ContactClient,
    ContactSubmission,
    MessagePriority,
    extract_honeypot_fields,
)
from src.shared.contact.validators import (
    INVALID_SUBMISSION_MESSAGE,
    compute_priority,
    honeypot_triggered,
    validate_content,
    validate_submission_timing,
)


class PipelineState(str, Enum):
    RECEIVED = "received"
    SANITIZED = "sanitized"
    HONEYPOT_CHECKED = "honeypot_checked"
    TIMING_CHECKED = "timing_checked"
    CONTENT_CHECKED = "content_checked"
    RATE_LIMITED = "rate_limited"
    CAPTCHA_VERIFIED = "captcha_verified"
    PERSISTED = "persisted"
    SILENTLY_ABSORBED = "silently_absorbed"
    REJECTED = "rejected"


@dataclass
class PipelineResult:
    """Outcome of a submission that was not rejected."""
    state: PipelineState
    client: ContactClient
    fingerprint: str
    submission: Optional[ContactSubmission] = None
    form_fill_time: Optional[int] = None
    priority: Optional[MessagePriority] = None
    captcha_method: Optional[str] = None
    history: List[PipelineState] = field(default_factory=list)

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def absorbed(self) -> bool:
        return self.state == PipelineState.SILENTLY_ABSORBED


def _validation_message(error: ValidationError) -> str:
    """First readable message out of a pydantic ValidationError."""
    for detail in error.errors():
        message = detail.get("msg", "")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        field_name = ".".join(str(part) for part in detail.get("loc", ()))
        if detail.get("type") == "missing":
            return f"{field_name} is required"
        if field_name == "email":
            return "Please enter a valid email"
        return message or INVALID_SUBMISSION_MESSAGE
    return INVALID_SUBMISSION_MESSAGE


class ContactPipeline:
    """Runs every gate over one submission. Holds no per-request state."""

    def __init__(self, rate_limiters: ContactRateLimiters, captcha_verifier: CaptchaVerifier,
                 clock: Callable[[], float] = time.time):
        self.rate_limiters = rate_limiters
        self.captcha_verifier = captcha_verifier
        self._clock = clock

    async def evaluate(self, body: Any, client: ContactClient) -> PipelineResult:
        """
        Run the gates in order.

        Returns:
            PipelineResult in CAPTCHA_VERIFIED (ready to persist) or SILENTLY_ABSORBED

        Raises:
            ContactRejection subclasses for every other outcome
        """
        result = PipelineResult(
            state=PipelineState.RECEIVED,
            client=client,
            fingerprint=generate_fingerprint(client.ip, client.user_agent, client.accept_language),
            history=[PipelineState.RECEIVED],
        )
        try:
            return await self._run(body, result)
        except ContactRejection as rejection:
            logging.warning(
                f"Contact submission rejected from IP: {client.ip} "
                f"(reason: {rejection.reason}, at: {result.state.value}, message: {rejection.message})"
            )
            result.advance(PipelineState.REJECTED)
            raise

    async def _run(self, body: Any, result: PipelineResult) -> PipelineResult:
        ip = result.client.ip

        if not isinstance(body, dict):
            raise MalformedRequest(INVALID_SUBMISSION_MESSAGE, reason="invalid_body")
        # Decoys are judged as sent; stripping markup must not empty a filled one
        decoys = extract_honeypot_fields(body)
        body = sanitize_payload(body)
        result.advance(PipelineState.SANITIZED)

        if honeypot_triggered(decoys):
            logging.warning(f"Honeypot triggered from IP: {ip}")
            self.rate_limiters.record_suspicious(ip)
            result.advance(PipelineState.SILENTLY_ABSORBED)
            return result
        result.advance(PipelineState.HONEYPOT_CHECKED)

        if not body.get("captchaToken"):
            raise MalformedRequest(CAPTCHA_REQUIRED_MESSAGE, reason="missing_captcha")

        now_ms = int(self._clock() * 1000)
        result.form_fill_time = validate_submission_timing(body.get("formStartTime"), now_ms)
        result.advance(PipelineState.TIMING_CHECKED)
        body["formStartTime"] = now_ms - result.form_fill_time

        try:
            submission = ContactSubmission.model_validate(body)
        except ValidationError as e:
            raise MalformedRequest(_validation_message(e), reason="invalid_fields")
        result.submission = submission

        try:
            validate_content(submission.name, submission.email, submission.subject, submission.message)
        except (SpamContent, SuspiciousPattern):
            self.rate_limiters.record_suspicious(ip)
            raise
        result.advance(PipelineState.CONTENT_CHECKED)

        self.rate_limiters.consume_submission(ip, submission.email, submission.phone)
        result.advance(PipelineState.RATE_LIMITED)

        try:
            result.captcha_method = await self.captcha_verifier.verify(submission.captcha_token, ip)
        except CaptchaFailed:
            self.rate_limiters.record_suspicious(ip)
            raise
        result.advance(PipelineState.CAPTCHA_VERIFIED)

        result.priority = compute_priority(submission.subject, submission.message)
        return result
