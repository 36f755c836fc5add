"""Environment-driven configuration for the contact service."""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]

_TRUE_VALUES = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def get_environment() -> str:
    return os.environ.get("ENVIRONMENT", "development").strip().lower()


def is_production() -> bool:
    return get_environment() == "production"


def get_cors_origins() -> List[str]:
    """Allowed CORS origins, comma separated in CORS_ORIGINS."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def get_trusted_proxy_hops() -> int:
    """Number of reverse proxies in front of the app that append to X-Forwarded-For. 0 ignores the header."""
    try:
        return max(int(os.environ.get("TRUSTED_PROXY_HOPS", "1")), 0)
    except ValueError:
        logging.warning("TRUSTED_PROXY_HOPS is not an integer, using 1")
        return 1


@dataclass(frozen=True)
class ContactSecurityConfig:
    """Switches for the contact submission pipeline."""
    recaptcha_secret_key: Optional[str] = None
    recaptcha_verify_url: str = DEFAULT_RECAPTCHA_VERIFY_URL
    recaptcha_min_score: float = 0.5
    captcha_timeout_seconds: float = 10.0
    captcha_fail_open: bool = False
    environment: str = "development"

    @classmethod
    def from_env(cls) -> "ContactSecurityConfig":
        environment = get_environment()
        fail_open = env_flag("CAPTCHA_FAIL_OPEN", default=False)
        if fail_open and environment == "production":
            logging.warning("CAPTCHA_FAIL_OPEN is ignored in production; CAPTCHA errors will fail closed")
            fail_open = False
        elif fail_open:
            logging.warning(f"CAPTCHA_FAIL_OPEN enabled ({environment}): CAPTCHA service errors will be allowed through")

        return cls(
            recaptcha_secret_key=os.environ.get("RECAPTCHA_SECRET_KEY") or None,
            recaptcha_verify_url=os.environ.get("RECAPTCHA_VERIFY_URL", DEFAULT_RECAPTCHA_VERIFY_URL),
            recaptcha_min_score=float(os.environ.get("RECAPTCHA_MIN_SCORE", "0.5")),
            captcha_timeout_seconds=float(os.environ.get("CAPTCHA_TIMEOUT_SECONDS", "10")),
            captcha_fail_open=fail_open,
            environment=environment,
        )
