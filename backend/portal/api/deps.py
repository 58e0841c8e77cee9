# portal/api/deps.py
from fastapi import Depends, Request

from portal.core.db import Database
from portal.core.errors import Forbidden, Unauthenticated
from portal.core.security import InvalidTokenError, verify_token
from portal.models.user import ADMIN_ROLES


def get_db(request: Request) -> Database:
    """Persistence adapter owned by the application (see portal.main.create_app)."""
    return request.app.state.db


def get_storage(request: Request):
    return request.app.state.storage


def get_settings(request: Request):
    return request.app.state.settings


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization")
    if not header or not header.startswith("Bearer "):
        return None
    return header.split(" ", 1)[1].strip() or None


def is_admin(identity: dict | None) -> bool:
    """True only for an attached identity whose role is admin or executive."""
    return bool(identity) and identity.get("role") in ADMIN_ROLES


async def require_auth(request: Request) -> dict:
    """
    FastAPI dependency for routes that need a signed-in user.

    Reads ``Authorization: Bearer <token>``, verifies the session token and
    attaches its identity claims to ``request.state.user``.

    Returns:
        dict: Identity claims (id, name, email, role, approval_status)

    Raises:
        Unauthenticated (401): "Authentication required" if the header is missing or malformed
        Unauthenticated (401): "Invalid or expired token" if verification fails

    Usage:
        @router.get("/me")
        async def me(user: dict = Depends(require_auth)):
            return user
    """
    token = _bearer_token(request)
    if not token:
        raise Unauthenticated("Authentication required")
    try:
        user = verify_token(token, request.app.state.jwt_secret)
    except InvalidTokenError:
        raise Unauthenticated("Invalid or expired token")
    request.state.user = user
    return user


async def optional_auth(request: Request) -> dict | None:
    """
    Like `require_auth`, but never rejects: a missing or invalid token just
    means no identity (guest-capable endpoints).
    """
    user = None
    token = _bearer_token(request)
    if token:
        try:
            user = verify_token(token, request.app.state.jwt_secret)
        except InvalidTokenError:
            user = None
    request.state.user = user
    return user


async def require_admin(user: dict = Depends(require_auth)) -> dict:
    """
    FastAPI dependency for admin-only endpoints.

    Builds on `require_auth`, so the identity is always resolved first.
    Both 'admin' and 'executive' roles pass.

    Raises:
        Forbidden (403): "Admin access required" for any other role
        Unauthenticated (401): from require_auth
    """
    if not is_admin(user):
        raise Forbidden("Admin access required")
    return user
