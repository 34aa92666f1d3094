"""
Caller identity and admin authentication.

Customer identity is established upstream by the identity provider, which
forwards a stable user identifier in the ``X-User-Id`` header. Admin views
use the same HTTP Basic scheme as the rest of the tooling.
"""

import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from dropstock.core.config import Settings, get_settings

security = HTTPBasic()

HOLDER_HEADER = "X-User-Id"


def get_holder_id(
    x_user_id: Optional[str] = Header(default=None, alias=HOLDER_HEADER),
) -> str:
    """The caller's user identifier, trusted as given."""
    holder_id = (x_user_id or "").strip()
    if not holder_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {HOLDER_HEADER} header",
        )
    if len(holder_id) > 100:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{HOLDER_HEADER} must be at most 100 characters",
        )
    return holder_id


def get_current_username(
    credentials: HTTPBasicCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Simple HTTP Basic Auth - checks username/password from settings
    """
    correct_username = settings.BASIC_AUTH_USERNAME
    correct_password = settings.BASIC_AUTH_PASSWORD

    # If no password is set in production, refuse rather than fall back
    if not correct_password and settings.is_production:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Basic auth password not configured"
        )

    # In development, allow a default password
    if not correct_password:
        correct_password = "changeme"

    is_correct_username = secrets.compare_digest(
        credentials.username.encode("utf8"),
        correct_username.encode("utf8")
    )
    is_correct_password = secrets.compare_digest(
        credentials.password.encode("utf8"),
        correct_password.encode("utf8")
    )

    if not (is_correct_username and is_correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def require_auth():
    """
    Dependency to require admin authentication
    Usage: @router.get("/", dependencies=[require_auth()])
    """
    return Depends(get_current_username)
