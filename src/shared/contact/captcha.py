"""Server-side CAPTCHA verification for contact submissions."""

import logging
from typing import Optional

import httpx

from src.shared.common.config import ContactSecurityConfig
from src.shared.contact.errors import CaptchaFailed, CaptchaServiceError, MalformedRequest

ALTERNATIVE_CAPTCHA_PREFIX = "alternative-captcha-"
CAPTCHA_REQUIRED_MESSAGE = "CAPTCHA verification is required"


def is_alternative_captcha(token: str) -> bool:
    """Tokens issued by the site's own client-side challenges (math, slider, puzzle, text, time)."""
    return token.startswith(ALTERNATIVE_CAPTCHA_PREFIX)


class CaptchaVerifier:
    """
    Verifies CAPTCHA tokens.

    Two token kinds are accepted:
    - reCAPTCHA tokens, checked against the verification service together with the client IP.
    - "alternative-captcha-<method>-..." tokens from the client-side fallback challenges.
      These are trusted on shape alone: the challenge was solved in the browser and the
      server has nothing to check it against, so they are a weaker guarantee than reCAPTCHA.

    Service problems (no secret configured, network errors, timeouts, bad responses) raise
    CaptchaServiceError unless config.captcha_fail_open is set, in which case the request
    is let through and a warning is logged.
    """

    def __init__(self, config: ContactSecurityConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def _service_error(self, message: str, ip: str) -> None:
        if self.config.captcha_fail_open:
            logging.warning(f"CAPTCHA service problem for IP {ip}, allowing through (fail-open): {message}")
            return
        raise CaptchaServiceError(message)

    async def verify(self, token: Optional[str], remote_ip: str) -> str:
        """
        Verify a token.

        Returns:
            "alternative" or "recaptcha" for a verified token, "fail_open" when a
            service problem was waved through

        Raises:
            MalformedRequest if the token is missing
            CaptchaFailed if the service rejects the token or its score is too low
            CaptchaServiceError if the service cannot be used (fail-closed)
        """
        if not token:
            raise MalformedRequest(CAPTCHA_REQUIRED_MESSAGE, reason="missing_captcha")

        if is_alternative_captcha(token):
            parts = token.split("-")
            method = parts[2] if len(parts) > 2 else "unknown"
            logging.info(f"Alternative CAPTCHA accepted (method: {method}, ip: {remote_ip})")
            return "alternative"

        if not self.config.recaptcha_secret_key:
            logging.error("reCAPTCHA secret key not configured")
            self._service_error("CAPTCHA verification service unavailable", remote_ip)
            return "fail_open"

        try:
            async with httpx.AsyncClient(timeout=self.config.captcha_timeout_seconds,
                                         transport=self._transport) as client:
                response = await client.post(
                    self.config.recaptcha_verify_url,
                    data={
                        "secret": self.config.recaptcha_secret_key,
                        "response": token,
                        "remoteip": remote_ip,
                    },
                )
                response.raise_for_status()
                result = response.json()
        except httpx.TimeoutException as e:
            logging.error(f"CAPTCHA verification timed out: {e}")
            self._service_error("CAPTCHA verification service error", remote_ip)
            return "fail_open"
        except (httpx.HTTPError, ValueError) as e:
            logging.error(f"CAPTCHA verification error: {e}", exc_info=True)
            self._service_error("CAPTCHA verification service error", remote_ip)
            return "fail_open"

        if not isinstance(result, dict):
            logging.error(f"Unexpected CAPTCHA verification response: {result!r}")
            self._service_error("CAPTCHA verification service error", remote_ip)
            return "fail_open"

        if not result.get("success"):
            logging.warning(f"CAPTCHA verification failed from IP: {remote_ip}, error codes: {result.get('error-codes')}")
            raise CaptchaFailed("CAPTCHA verification failed. Please try again.")

        score = result.get("score")
        if score is not None and (isinstance(score, bool) or not isinstance(score, (int, float))):
            logging.error(f"Unexpected CAPTCHA score from IP: {remote_ip}, score: {score!r}")
            self._service_error("CAPTCHA verification service error", remote_ip)
            return "fail_open"
        if score is not None and score < self.config.recaptcha_min_score:
            logging.warning(f"Low CAPTCHA score from IP: {remote_ip}, score: {score}")
            raise CaptchaFailed("Security verification failed. Please try again.", reason="captcha_low_score")

        logging.info(f"reCAPTCHA verified for IP: {remote_ip}")
        return "recaptcha"
