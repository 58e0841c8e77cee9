# portal/models/__init__.py
"""
Domain models module initialization.

Rows travel through the persistence adapter as plain dicts; this package
holds the enumerations and the small typed views that give them meaning.

Exported:
- UserAccount: user row with guest/ban semantics
- ROLES / ADMIN_ROLES / CONTENT_ROLES / APPROVAL_STATUSES
"""
from .user import (
    UserAccount,
    ROLES,
    ADMIN_ROLES,
    CONTENT_ROLES,
    SELF_SERVICE_ROLES,
    APPROVAL_STATUSES,
)
