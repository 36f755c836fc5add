"""Tests for CAPTCHA verification."""

from urllib.parse import parse_qsl

import httpx
import pytest

from src.shared.common.config import ContactSecurityConfig
from src.shared.contact.captcha import CaptchaVerifier, is_alternative_captcha
from src.shared.contact.errors import CaptchaFailed, CaptchaServiceError, MalformedRequest

from tst.stubs import RecaptchaStub

IP = "203.0.113.7"


def _verifier(stub: RecaptchaStub, **config) -> CaptchaVerifier:
    config.setdefault("recaptcha_secret_key", "test-secret")
    return CaptchaVerifier(ContactSecurityConfig(**config), transport=stub.transport)


class TestAlternativeTokens:

    def test_prefix_detection(self):
        assert is_alternative_captcha("alternative-captcha-math-1750000000000")
        assert not is_alternative_captcha("03AFcWeA6x")

    @pytest.mark.asyncio
    async def test_accepted_without_calling_service(self, recaptcha):
        verifier = _verifier(recaptcha)

        method = await verifier.verify("alternative-captcha-slider-1750000000000", IP)

        assert method == "alternative"
        assert recaptcha.requests == []

    @pytest.mark.asyncio
    async def test_accepted_without_secret(self, recaptcha):
        verifier = _verifier(recaptcha, recaptcha_secret_key=None)
        assert await verifier.verify("alternative-captcha-puzzle-1", IP) == "alternative"


class TestRecaptcha:

    @pytest.mark.asyncio
    async def test_success(self, recaptcha, captcha_verifier):
        method = await captcha_verifier.verify("recaptcha-token-abc", IP)

        assert method == "recaptcha"
        assert len(recaptcha.requests) == 1
        sent = dict(parse_qsl(recaptcha.requests[0].content.decode()))
        assert sent == {"secret": "test-secret", "response": "recaptcha-token-abc", "remoteip": IP}

    @pytest.mark.asyncio
    async def test_missing_token(self, captcha_verifier):
        with pytest.raises(MalformedRequest) as exc_info:
            await captcha_verifier.verify("", IP)
        assert exc_info.value.message == "CAPTCHA verification is required"

    @pytest.mark.asyncio
    async def test_rejected_token(self):
        stub = RecaptchaStub({"success": False, "error-codes": ["invalid-input-response"]})

        with pytest.raises(CaptchaFailed) as exc_info:
            await _verifier(stub).verify("bad-token", IP)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "CAPTCHA verification failed. Please try again."

    @pytest.mark.asyncio
    async def test_low_score(self):
        stub = RecaptchaStub({"success": True, "score": 0.3})

        with pytest.raises(CaptchaFailed) as exc_info:
            await _verifier(stub).verify("token", IP)

        assert exc_info.value.reason == "captcha_low_score"
        assert exc_info.value.message == "Security verification failed. Please try again."

    @pytest.mark.asyncio
    async def test_score_at_threshold_passes(self):
        stub = RecaptchaStub({"success": True, "score": 0.5})
        assert await _verifier(stub).verify("token", IP) == "recaptcha"


class TestServiceProblems:

    @pytest.mark.asyncio
    async def test_missing_secret_fails_closed(self, recaptcha):
        verifier = _verifier(recaptcha, recaptcha_secret_key=None)

        with pytest.raises(CaptchaServiceError) as exc_info:
            await verifier.verify("token", IP)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "CAPTCHA verification service unavailable"
        assert recaptcha.requests == []

    @pytest.mark.asyncio
    async def test_missing_secret_fail_open(self, recaptcha):
        verifier = _verifier(recaptcha, recaptcha_secret_key=None, captcha_fail_open=True)
        assert await verifier.verify("token", IP) == "fail_open"

    @pytest.mark.asyncio
    async def test_timeout_fails_closed(self):
        stub = RecaptchaStub(error=httpx.ReadTimeout("timed out"))

        with pytest.raises(CaptchaServiceError) as exc_info:
            await _verifier(stub).verify("token", IP)

        assert exc_info.value.message == "CAPTCHA verification service error"

    @pytest.mark.asyncio
    async def test_timeout_fail_open(self):
        stub = RecaptchaStub(error=httpx.ReadTimeout("timed out"))
        assert await _verifier(stub, captcha_fail_open=True).verify("token", IP) == "fail_open"

    @pytest.mark.asyncio
    async def test_connection_error_fails_closed(self):
        stub = RecaptchaStub(error=httpx.ConnectError("connection refused"))
        with pytest.raises(CaptchaServiceError):
            await _verifier(stub).verify("token", IP)

    @pytest.mark.asyncio
    async def test_server_error_fails_closed(self):
        stub = RecaptchaStub({"error": "unavailable"}, status_code=503)
        with pytest.raises(CaptchaServiceError):
            await _verifier(stub).verify("token", IP)

    @pytest.mark.asyncio
    async def test_unexpected_body_fails_closed(self):
        stub = RecaptchaStub(["not", "an", "object"])
        with pytest.raises(CaptchaServiceError):
            await _verifier(stub).verify("token", IP)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", ["0.9", True, {"value": 0.9}])
    async def test_non_numeric_score_fails_closed(self, score):
        stub = RecaptchaStub({"success": True, "score": score})

        with pytest.raises(CaptchaServiceError) as exc_info:
            await _verifier(stub).verify("token", IP)

        assert exc_info.value.message == "CAPTCHA verification service error"

    @pytest.mark.asyncio
    async def test_non_numeric_score_fail_open(self):
        stub = RecaptchaStub({"success": True, "score": "0.9"})
        assert await _verifier(stub, captcha_fail_open=True).verify("token", IP) == "fail_open"


class TestConfigFromEnv:

    def test_defaults(self, monkeypatch):
        for name in ("RECAPTCHA_SECRET_KEY", "CAPTCHA_FAIL_OPEN", "ENVIRONMENT", "RECAPTCHA_MIN_SCORE"):
            monkeypatch.delenv(name, raising=False)

        config = ContactSecurityConfig.from_env()

        assert config.recaptcha_secret_key is None
        assert config.recaptcha_min_score == 0.5
        assert config.captcha_fail_open is False
        assert config.environment == "development"

    def test_fail_open_honoured_outside_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "staging")
        monkeypatch.setenv("CAPTCHA_FAIL_OPEN", "true")
        assert ContactSecurityConfig.from_env().captcha_fail_open is True

    def test_fail_open_ignored_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("CAPTCHA_FAIL_OPEN", "true")
        assert ContactSecurityConfig.from_env().captcha_fail_open is False
