"""End-to-end tests for POST /api/contact."""

import pytest

from src.app import app
from src.shared.common.config import ContactSecurityConfig
from src.shared.contact.captcha import CaptchaVerifier
from src.shared.contact.database import ContactMessage
from src.shared.contact.pipeline import ContactPipeline
from src.shared.contact.routes import get_contact_pipeline
from tst.stubs import RecaptchaStub

IP = "203.0.113.7"
HEADERS = {"X-Forwarded-For": IP, "User-Agent": "Mozilla/5.0", "Accept-Language": "en-IN"}


def _post(client, body, headers=HEADERS):
    return client.post("/api/contact", json=body, headers=headers)


def test_valid_submission_is_stored(client, db_session, make_submission, notifications):
    response = _post(client, make_submission())

    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "Your message has been sent successfully. We will get back to you soon."
    assert payload["data"]["priority"] == "medium"

    stored = db_session.query(ContactMessage).one()
    assert stored.id == payload["data"]["id"]
    assert stored.status == "new"
    assert stored.email == "priya.raman@ssmtech.in"
    assert stored.ip == IP
    assert stored.user_agent == "Mozilla/5.0"
    assert stored.form_fill_time == 10_000
    assert stored.verified is True
    assert len(stored.fingerprint) == 64

    assert [n["id"] for n in notifications] == [stored.id]


def test_security_headers_on_contact_responses(client, make_submission):
    response = _post(client, make_submission())

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-XSS-Protection"] == "1; mode=block"
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


def test_security_headers_on_rejections(client, make_submission):
    response = _post(client, make_submission(captchaToken=None))
    assert response.headers["X-Frame-Options"] == "DENY"


def test_honeypot_looks_successful_but_stores_nothing(client, db_session, make_submission, notifications, rate_limiters):
    response = _post(client, make_submission(website="http://cheap-backlinks.biz"))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Message sent successfully"}
    assert db_session.query(ContactMessage).count() == 0
    assert notifications == []
    assert rate_limiters.suspicious.get(IP).points == 9


@pytest.mark.parametrize("decoy", ["javascript:", "<script>x</script>", "onclick=", "data:text/html"])
def test_honeypot_with_markup_only_value_is_absorbed(client, db_session, make_submission, notifications, rate_limiters, decoy):
    response = _post(client, make_submission(website=decoy))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Message sent successfully"}
    assert db_session.query(ContactMessage).count() == 0
    assert notifications == []
    assert rate_limiters.suspicious.get(IP).points == 9


def test_spam_is_rejected(client, db_session, make_submission, rate_limiters):
    body = make_submission(message="Congratulations! Claim your free money now, click here.")

    response = _post(client, body)

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Message content appears to be spam"}
    assert db_session.query(ContactMessage).count() == 0
    assert rate_limiters.suspicious.get(IP).points == 9


def test_third_submission_from_same_email_is_rate_limited(client, db_session, make_submission):
    assert _post(client, make_submission()).status_code == 201
    assert _post(client, make_submission()).status_code == 201

    response = _post(client, make_submission())

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "1800"
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == "Too many contact attempts. Please try again later."
    assert payload["retryAfter"] == 1800
    assert payload["blockedUntil"].endswith("Z")
    assert db_session.query(ContactMessage).count() == 2


def test_fourth_submission_from_same_ip_is_rate_limited(client, make_submission):
    for n in range(3):
        body = make_submission(email=f"student{n}@ssmtech.in", phone=f"98765 0000{n}")
        assert _post(client, body).status_code == 201

    response = _post(client, make_submission(email="student9@ssmtech.in", phone="98765 00009"))

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "3600"


def test_missing_captcha_token(client, make_submission):
    response = _post(client, make_submission(captchaToken=None))

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "CAPTCHA verification is required"}


def test_submitted_too_fast(client, make_submission, clock):
    response = _post(client, make_submission(formStartTime=str(int((clock.now - 2) * 1000))))

    assert response.status_code == 400
    assert response.json()["message"] == "Please take more time to fill out the form"


def test_stale_form_session(client, make_submission, clock):
    response = _post(client, make_submission(formStartTime=str(int((clock.now - 3600) * 1000))))

    assert response.status_code == 400
    assert response.json()["message"] == "Form session expired. Please refresh and try again."


def test_invalid_json_body(client):
    response = client.post(
        "/api/contact",
        content=b"name=Priya&email=priya",
        headers={**HEADERS, "Content-Type": "application/x-www-form-urlencoded"},
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid form submission"}


def test_invalid_field_is_rejected(client, make_submission):
    response = _post(client, make_submission(subject="Hi"))

    assert response.status_code == 400
    assert response.json()["message"] == "Subject must be at least 5 characters"


def test_failed_captcha(client, make_submission, recaptcha):
    recaptcha.payload = {"success": False, "error-codes": ["timeout-or-duplicate"]}

    response = _post(client, make_submission())

    assert response.status_code == 400
    assert response.json()["message"] == "CAPTCHA verification failed. Please try again."


def test_captcha_service_down_fails_closed(client, make_submission, rate_limiters, clock, db_session):
    stub = RecaptchaStub({"error": "unavailable"}, status_code=503)
    verifier = CaptchaVerifier(ContactSecurityConfig(recaptcha_secret_key="test-secret"), transport=stub.transport)
    app.dependency_overrides[get_contact_pipeline] = lambda: ContactPipeline(rate_limiters, verifier, clock=clock)

    response = _post(client, make_submission())

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "CAPTCHA verification service error"}
    assert db_session.query(ContactMessage).count() == 0


def test_alternative_captcha_is_stored_unverified(client, db_session, make_submission):
    response = _post(client, make_submission(captchaToken="alternative-captcha-math-1750000000000"))

    assert response.status_code == 201
    assert db_session.query(ContactMessage).one().verified is False


def test_urgent_priority(client, make_submission):
    body = make_submission(subject="Cannot access class", message="My live class link fails, please help asap.")

    response = _post(client, body)

    assert response.json()["data"]["priority"] == "urgent"
