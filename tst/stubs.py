"""Test doubles shared across the suite."""

from typing import List, Optional

import httpx

START_TIME = 1_750_000_000.0
ADMIN_HEADERS = {"X-Admin-Secret": "test-admin-secret"}


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecaptchaStub:
    """Stands in for the reCAPTCHA siteverify endpoint."""

    def __init__(self, payload=None, status_code: int = 200, error: Optional[Exception] = None):
        self.payload = payload if payload is not None else {"success": True}
        self.status_code = status_code
        self.error = error
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
