# portal/core/security.py
"""
Security module for authentication and authorization.
Handles password hashing, JWT session token issuance/verification, and
resolution of the token signing secret.
"""
import datetime as dt
import logging

import jwt  # PyJWT
from jwt import InvalidTokenError
from passlib.context import CryptContext

logger = logging.getLogger("uvicorn.error")

# Password hashing context
# Argon2 is a modern, salted, memory-hard password hashing algorithm
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)

JWT_ALG = "HS256"  # HMAC SHA-256
DEFAULT_TOKEN_TTL = dt.timedelta(days=7)

# Development-only fallback; resolve_jwt_secret() refuses it in production
DEV_FALLBACK_SECRET = "portal-dev-secret-change-this-to-a-long-random-value"

# Claims added by issue_token() on top of the caller's payload
_REGISTERED_CLAIMS = ("iat", "exp")

__all__ = [
    "InvalidTokenError",
    "hash_password",
    "verify_password",
    "resolve_jwt_secret",
    "issue_token",
    "verify_token",
    "identity_claims",
]


def hash_password(plain: str) -> str:
    """
    Hash a plain text password using Argon2.

    Args:
        plain: Plain text password to hash

    Returns:
        Hashed password string (safe to store in database)
    """
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str | None) -> bool:
    """
    Verify a plain text password against a stored credential.

    Guest accounts have no credential (``hashed is None``) and never verify.

    Args:
        plain: Plain text password to verify
        hashed: Hashed password from database, or None for guest accounts

    Returns:
        True if password matches, False otherwise
    """
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # Unrecognized hash format in the database row
        return False


def resolve_jwt_secret(settings) -> str:
    """
    Pick the signing secret for session tokens.

    Args:
        settings: Application settings (reads ``jwt_secret`` and ``is_production``)

    Returns:
        The configured secret, or the development fallback when none is set.

    Raises:
        RuntimeError: If no secret is configured while running in production.
    """
    if settings.jwt_secret:
        return settings.jwt_secret
    if settings.is_production:
        raise RuntimeError("JWT_SECRET must be set when ENV=production")
    logger.warning("[auth] WARNING: JWT_SECRET is not set. Using insecure development default.")
    return DEV_FALLBACK_SECRET


def issue_token(payload: dict, secret: str, ttl: dt.timedelta = DEFAULT_TOKEN_TTL) -> str:
    """
    Sign a session token carrying the given identity claims.

    The claims are a snapshot: later changes to the user row (e.g. a role
    change) are not reflected until a new token is issued.

    Args:
        payload: Identity claims to embed (e.g. id, name, email, role, approval_status)
        secret: HMAC signing secret
        ttl: Token lifetime (default: 7 days)

    Returns:
        Encoded JWT token string
    """
    now = dt.datetime.now(dt.timezone.utc)
    claims = dict(payload)
    claims["iat"] = now
    claims["exp"] = now + ttl
    return jwt.encode(claims, secret, algorithm=JWT_ALG)


def verify_token(token: str, secret: str) -> dict:
    """
    Check a session token's signature and expiry.

    Args:
        token: JWT token string
        secret: HMAC signing secret the token must have been signed with

    Returns:
        The identity claims passed to ``issue_token`` (without iat/exp).

    Raises:
        jwt.InvalidTokenError: On bad signature, malformed token, missing exp or expiry
            (``ExpiredSignatureError`` and ``InvalidSignatureError`` are subclasses).
    """
    claims = jwt.decode(token, secret, algorithms=[JWT_ALG], options={"require": ["exp"]})
    return {k: v for k, v in claims.items() if k not in _REGISTERED_CLAIMS}


def identity_claims(user: dict) -> dict:
    """Identity snapshot embedded in session tokens."""
    return {
        "id": user["id"],
        "name": user["name"],
        "email": user["email"],
        "role": user["role"],
        "approval_status": user["approval_status"],
    }
