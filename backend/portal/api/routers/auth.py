# portal/api/routers/auth.py
import datetime as dt
import logging
import secrets

from fastapi import APIRouter, Depends, Request, status

from portal.api.deps import get_db, get_settings, require_auth
from portal.core.db import Database
from portal.core.errors import Forbidden, NotFound, Unauthenticated, ValidationFailed
from portal.core.security import hash_password, identity_claims, issue_token, verify_password
from portal.models.user import SELF_SERVICE_ROLES, UserAccount
from portal.schemas.auth import ForgotPasswordIn, LoginIn, RegisterIn, ResetPasswordIn
from portal.services.accounts import create_account, find_user_by_email, normalize_email

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_SENT_MESSAGE = "If that email exists, a reset link was sent."


def _session(request: Request, user_row: dict) -> dict:
    """Token + identity payload returned by register and login."""
    claims = identity_claims(user_row)
    ttl = dt.timedelta(days=request.app.state.settings.token_ttl_days)
    token = issue_token(claims, request.app.state.jwt_secret, ttl)
    return {"token": token, "user": claims}


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterIn, request: Request, db: Database = Depends(get_db)):
    """
    Register a new account.

    Self-service roles are limited to user, university and company; anything
    else falls back to "user". New accounts start with approval_status "pending".
    If the email belongs to a guest account (created when someone posted a
    question or answer with only an email), that account is claimed instead.

    Returns:
        dict: {"token": str, "user": {id, name, email, role, approval_status}}

    Raises:
        ValidationFailed (400): Missing name, email or password
        Conflict (409): Email already registered
    """
    role = body.role if body.role in SELF_SERVICE_ROLES else "user"
    user_id = await create_account(db, body, role)
    row = await db.fetch_one("SELECT * FROM users WHERE id = ?", [user_id])
    return _session(request, row)


@router.post("/login")
async def login(body: LoginIn, request: Request, db: Database = Depends(get_db)):
    """
    Authenticate with email and password.

    Returns:
        dict: {"token": str, "user": identity claims}

    Raises:
        ValidationFailed (400): Missing email or password
        Unauthenticated (401): Unknown email, guest account or wrong password
        Forbidden (403): Account is banned
    """
    if not body.email or not body.password:
        raise ValidationFailed("Email and password required")

    row = await find_user_by_email(db, body.email)
    if row is None:
        raise Unauthenticated("Invalid credentials")

    account = UserAccount.from_row(row)
    if account.is_banned:
        raise Forbidden("Account is banned")
    if account.is_guest or not verify_password(body.password, account.password_hash):
        raise Unauthenticated("Invalid credentials")

    return _session(request, row)


@router.get("/me")
async def me(user: dict = Depends(require_auth), db: Database = Depends(get_db)):
    """Fresh account data for the token's user (claims in the token may be stale)."""
    row = await db.fetch_one(
        "SELECT id, name, email, role, approval_status, organization_name, created_at "
        "FROM users WHERE id = ?",
        [user["id"]],
    )
    if row is None:
        raise NotFound("User not found")
    return row


@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordIn, db: Database = Depends(get_db),
                          settings=Depends(get_settings)):
    """
    Start a password reset.

    Always answers with the same message so callers cannot probe which emails
    exist. The reset link is valid for one hour and is written to the log.
    """
    email = normalize_email(body.email)
    if not email:
        raise ValidationFailed("Email required")

    row = await db.fetch_one("SELECT id FROM users WHERE email = ?", [email])
    if row is None:
        return {"message": RESET_SENT_MESSAGE}

    token = secrets.token_hex(32)
    await db.run(
        "UPDATE users SET reset_token = ?, reset_token_expires = datetime('now', '+1 hour') WHERE id = ?",
        [token, row["id"]],
    )
    reset_url = f"{settings.client_url.rstrip('/')}/reset-password?token={token}"
    logger.info("[auth/forgot-password] Reset link for %s: %s", email, reset_url)
    return {"message": RESET_SENT_MESSAGE}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordIn, db: Database = Depends(get_db)):
    """
    Finish a password reset with the token from the reset link.

    Raises:
        ValidationFailed (400): Missing fields, or the token is unknown or expired
    """
    if not body.token or not body.password:
        raise ValidationFailed("Token and new password required")

    row = await db.fetch_one(
        "SELECT id FROM users WHERE reset_token = ? AND reset_token_expires > datetime('now')",
        [body.token],
    )
    if row is None:
        raise ValidationFailed("Invalid or expired reset token")

    await db.run(
        "UPDATE users SET password_hash = ?, reset_token = NULL, reset_token_expires = NULL WHERE id = ?",
        [hash_password(body.password), row["id"]],
    )
    return {"message": "Password reset successfully"}
