# portal/models/user.py
"""
User account model.
Represents a row of the `users` table: credentials, profile information,
role-based access control and moderation flags.
"""
from dataclasses import dataclass
from typing import Optional

# Role enumeration shared by every admin check and the users.role CHECK constraint
ROLES = ("user", "member", "admin", "executive", "university", "company")
# Roles that pass the admin-only gate
ADMIN_ROLES = frozenset({"admin", "executive"})
# Roles allowed to see member-only content
CONTENT_ROLES = frozenset({"admin", "executive", "member"})
# Roles a person may pick for themselves at registration
SELF_SERVICE_ROLES = ("user", "university", "company")

APPROVAL_STATUSES = ("pending", "approved", "rejected")

# Columns safe to return to the account owner
PROFILE_COLUMNS = (
    "id, name, email, role, approval_status, organization_name, phone, "
    "bio, linkedin_url, twitter_url, website_url, profile_image, created_at"
)
# Columns shown in the admin user list
ADMIN_LIST_COLUMNS = (
    "id, name, email, role, approval_status, organization_name, "
    "gst, pan, incorporation_number, phone, is_banned, created_at"
)


@dataclass
class UserAccount:
    """
    User account as stored in the database.

    Security:
    - ``password_hash`` is None for guest accounts, created implicitly when
      someone posts content with only an email address; they can never log in
    - Email is unique across all users
    """
    id: int
    name: str
    email: str
    password_hash: Optional[str]
    role: str = "user"
    approval_status: str = "pending"
    is_banned: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "UserAccount":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row.get("password_hash"),
            role=row.get("role") or "user",
            approval_status=row.get("approval_status") or "pending",
            is_banned=bool(row.get("is_banned")),
        )

    @property
    def is_guest(self) -> bool:
        return not self.password_hash
