"""Request authentication dependencies.

Users are authenticated upstream by the OIDC gateway, which forwards the
subject identifier in a trusted header. Admin endpoints use HTTP Basic auth
with a single shared password from ADMIN_WEB_PASSWORD; the Basic username is
recorded as the acting admin id.
"""

from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.config import settings

security = HTTPBasic()


async def verify_admin(
    credentials: HTTPBasicCredentials = Depends(security),  # noqa: B008
) -> str:
    """FastAPI dependency — verify HTTP Basic credentials.

    Returns the username on success, raises 401 on failure.
    """
    expected = settings.security.admin_web_password
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ADMIN_WEB_PASSWORD not configured",
        )

    password_ok = secrets.compare_digest(
        credentials.password.encode("utf-8"),
        expected.encode("utf-8"),
    )
    if not password_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


async def current_user_id(request: Request) -> str:
    """FastAPI dependency — the authenticated subject forwarded by the gateway."""
    user_id = request.headers.get(settings.security.user_id_header, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User ID not found in request",
        )
    return user_id


def client_ip(request: Request) -> str | None:
    """Remote address of the caller, if the server knows it."""
    return request.client.host if request.client else None
