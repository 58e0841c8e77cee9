# portal/core/bootstrap.py
"""
Bootstrap module for application initialization.
Handles initial setup tasks such as creating default admin user on first startup.
"""
import os
import logging

from portal.core.db import Database
from portal.core.security import hash_password

logger = logging.getLogger("uvicorn.error")


async def ensure_default_admin(db: Database) -> int | None:
    """
    If no admin exists in the database, create a default admin based on environment variables.
    Only takes effect under the following conditions:
      - Currently no user with role="admin"
      - And ADMIN_PASSWORD is set (to avoid using default weak password)
    Environment variables:
      ADMIN_NAME     (default: "Administrator")
      ADMIN_EMAIL    (default: "admin@example.com")
      ADMIN_PASSWORD (required, otherwise won't create)

    Returns:
        The new admin's id, or None when nothing was created.
    """
    # Check if any admin user already exists
    has_admin = await db.fetch_one("SELECT id FROM users WHERE role = 'admin' LIMIT 1")
    if has_admin:
        return None

    admin_password = os.getenv("ADMIN_PASSWORD")
    if not admin_password:
        logger.warning("[bootstrap] No admin present, but ADMIN_PASSWORD not set -> skip creating default admin.")
        return None

    admin_name = os.getenv("ADMIN_NAME", "Administrator")
    admin_email = os.getenv("ADMIN_EMAIL", "admin@example.com").strip().lower()

    # The email may already belong to a regular or guest account: promote it instead
    existing = await db.fetch_one("SELECT id FROM users WHERE email = ?", [admin_email])
    if existing:
        await db.run(
            "UPDATE users SET role = 'admin', approval_status = 'approved', password_hash = ? WHERE id = ?",
            [hash_password(admin_password), existing["id"]],
        )
        logger.warning("[bootstrap] Promoted existing account to admin -> email=%s id=%s",
                       admin_email, existing["id"])
        return existing["id"]

    result = await db.run(
        "INSERT INTO users (name, email, password_hash, role, approval_status) "
        "VALUES (?, ?, ?, 'admin', 'approved')",
        [admin_name, admin_email, hash_password(admin_password)],
    )
    logger.warning("[bootstrap] Created default admin -> name=%s email=%s id=%s",
                   admin_name, admin_email, result.insert_id)
    return result.insert_id
