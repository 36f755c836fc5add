"""Admin authentication dependencies."""

import os
import secrets
from fastapi import HTTPException, status, Header
from typing import Optional


def verify_admin(
    x_admin_secret: Optional[str] = Header(None, alias="X-Admin-Secret"),
) -> str:
    """
    Verify admin access with the shared admin secret.

    Returns "admin" if the check passes.
    Raises HTTPException if the secret is not configured, missing or wrong.
    """
    admin_secret = os.environ.get("ADMIN_SECRET")

    if not admin_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin authentication not configured"
        )

    if not x_admin_secret:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin secret required. Provide X-Admin-Secret header."
        )

    if not secrets.compare_digest(x_admin_secret, admin_secret):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin secret"
        )

    return "admin"
