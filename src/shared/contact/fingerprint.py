"""Client identity helpers for contact submissions."""

import hashlib
from typing import Optional

from fastapi import Request

from src.shared.common.config import get_trusted_proxy_hops


def get_client_ip(request: Request, trusted_proxy_hops: Optional[int] = None) -> str:
    """
    Get client IP address for rate limiting.

    Each trusted proxy appends the address it received the request from, so the
    client is the entry `trusted_proxy_hops` places from the right of
    X-Forwarded-For. Entries left of that are whatever the client sent.
    """
    if trusted_proxy_hops is None:
        trusted_proxy_hops = get_trusted_proxy_hops()

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and trusted_proxy_hops > 0:
        chain = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if chain:
            # Shorter chain than configured: the leftmost entry is the best we have
            return chain[-min(trusted_proxy_hops, len(chain))]
    # Fallback to direct connection
    return request.client.host if request.client and request.client.host else "unknown"


def generate_fingerprint(source_ip: Optional[str], user_agent: Optional[str], accept_language: Optional[str]) -> str:
    """SHA-256 hex digest of IP, User-Agent and Accept-Language. Missing parts hash as empty strings."""
    material = f"{source_ip or ''}{user_agent or ''}{accept_language or ''}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
