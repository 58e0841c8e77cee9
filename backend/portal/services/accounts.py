"""
Account helpers shared by the auth, users and Q&A routers.
"""
import logging
import sqlite3
from typing import Optional

from portal.core.db import Database
from portal.core.errors import Conflict, ValidationFailed
from portal.core.security import hash_password
from portal.models.user import ROLES

logger = logging.getLogger("uvicorn.error")

GUEST_NAME = "Guest"


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


async def find_user_by_email(db: Database, email: str) -> Optional[dict]:
    return await db.fetch_one("SELECT * FROM users WHERE email = ?", [normalize_email(email)])


async def create_account(db: Database, body, role: str, approval_status: str = "pending") -> int:
    """
    Insert a user with a password, or claim the guest account holding the email.

    A guest account (NULL password_hash) is upgraded in place so the content it
    already posted stays attached; any other existing account is a conflict.

    Returns:
        The account id.

    Raises:
        ValidationFailed: name, email or password missing
        Conflict: email already belongs to a registered account
    """
    if role not in ROLES:
        raise ValidationFailed("Invalid role.")
    if not (body.name and body.email and body.password):
        raise ValidationFailed("Name, email, and password required")

    email = normalize_email(body.email)
    password_hash = hash_password(body.password)
    profile = [
        body.organization_name or None,
        body.gst or None,
        body.pan or None,
        body.incorporation_number or None,
        body.phone or None,
    ]

    existing = await find_user_by_email(db, email)
    if existing and existing["password_hash"]:
        raise Conflict("Email already registered")

    if existing:
        claimed = await db.run(
            """UPDATE users SET name = ?, password_hash = ?, role = ?, approval_status = ?,
                   organization_name = ?, gst = ?, pan = ?, incorporation_number = ?, phone = ?
               WHERE id = ? AND password_hash IS NULL""",
            [body.name, password_hash, role, approval_status, *profile, existing["id"]],
        )
        if claimed.affected_rows == 0:
            raise Conflict("Email already registered")
        logger.info("[auth] Guest account claimed -> id=%s", existing["id"])
        return existing["id"]

    try:
        result = await db.run(
            """INSERT INTO users (name, email, password_hash, role, approval_status,
                                  organization_name, gst, pan, incorporation_number, phone)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            [body.name, email, password_hash, role, approval_status, *profile],
        )
    except sqlite3.IntegrityError:
        # Another request registered the same email in the meantime
        raise Conflict("Email already registered")
    return result.insert_id


async def resolve_author(db: Database, user: Optional[dict], email: Optional[str],
                         name: Optional[str]) -> int:
    """
    Id of the account a question or answer is posted under.

    Signed-in users post as themselves. Guests must give an email; the account
    holding it is reused (guest or not), otherwise a guest account without a
    credential is created.
    """
    if user:
        return user["id"]

    email = normalize_email(email)
    if not email:
        raise ValidationFailed("Email required for guests")

    existing = await db.fetch_one("SELECT id FROM users WHERE email = ?", [email])
    if existing:
        return existing["id"]

    try:
        result = await db.run(
            "INSERT INTO users (email, name, password_hash) VALUES (?, ?, NULL)",
            [email, (name or "").strip() or GUEST_NAME],
        )
    except sqlite3.IntegrityError:
        # Created by a concurrent post with the same email
        existing = await db.fetch_one("SELECT id FROM users WHERE email = ?", [email])
        if existing is None:
            raise
        return existing["id"]
    logger.info("[auth] Guest account created -> id=%s", result.insert_id)
    return result.insert_id
