"""
Shared pytest fixtures.
The database module reads DATABASE_URL at import time, so the environment is set before any src import.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_SECRET"] = "test-admin-secret"
os.environ.pop("SUPPORT_EMAIL", None)

from typing import Callable, Dict, List

import pytest
from fastapi.testclient import TestClient

from src.app import app
from src.shared.common.config import ContactSecurityConfig
from src.shared.common.database import Base, SessionLocal, engine
from src.shared.contact import routes as contact_routes
from src.shared.contact.captcha import CaptchaVerifier
from src.shared.contact.pipeline import ContactPipeline
from src.shared.contact.rate_limit import ContactRateLimiters
from src.shared.contact.routes import get_contact_pipeline
from src.shared.settings.settings_service import SettingsService, get_settings_service
from tst.stubs import FakeClock, RecaptchaStub


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiters(clock) -> ContactRateLimiters:
    return ContactRateLimiters(clock=clock)


@pytest.fixture
def recaptcha() -> RecaptchaStub:
    return RecaptchaStub()


@pytest.fixture
def captcha_config() -> ContactSecurityConfig:
    return ContactSecurityConfig(recaptcha_secret_key="test-secret", captcha_timeout_seconds=5.0)


@pytest.fixture
def captcha_verifier(captcha_config, recaptcha) -> CaptchaVerifier:
    return CaptchaVerifier(captcha_config, transport=recaptcha.transport)


@pytest.fixture
def pipeline(rate_limiters, captcha_verifier, clock) -> ContactPipeline:
    return ContactPipeline(rate_limiters, captcha_verifier, clock=clock)


@pytest.fixture
def settings_service(tmp_path) -> SettingsService:
    return SettingsService(str(tmp_path / "settings.json"), cache_ttl_seconds=60)


@pytest.fixture
def notifications(monkeypatch) -> List[Dict]:
    """Captures staff notifications instead of sending email."""
    sent: List[Dict] = []
    monkeypatch.setattr(contact_routes, "notify_new_contact_message",
                        lambda message, settings_service: sent.append(message))
    return sent


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(pipeline, settings_service, notifications, db_session) -> TestClient:
    app.dependency_overrides[get_contact_pipeline] = lambda: pipeline
    app.dependency_overrides[get_settings_service] = lambda: settings_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_submission(clock) -> Callable[..., Dict]:
    """Build a valid contact form body; keyword arguments override fields."""

    def _make(**overrides) -> Dict:
        body = {
            "name": "Priya Raman",
            "email": "priya.raman@ssmtech.in",
            "phone": "+91 98765 43210",
            "subject": "Batch timings for Python course",
            "message": "Could you share the weekend batch timings for the Python course?",
            "captchaToken": "recaptcha-token-abc",
            "formStartTime": str(int((clock.now - 10) * 1000)),
            "website": "",
            "url": "",
            "link": "",
        }
        body.update(overrides)
        return {key: value for key, value in body.items() if value is not None}

    return _make
