# portal/api/routers/admin.py
"""
Admin console endpoints. Every route requires an admin or executive.
"""
from fastapi import APIRouter, Depends

from portal.api.deps import get_db, require_admin
from portal.api.routers.users import change_ban, change_role, list_accounts
from portal.core.db import Database
from portal.schemas.users import BanIn, RoleUpdateIn

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ==============================================================================
# I. User Management Interface
#     Prefix: /api/admin/users
# ==============================================================================
@router.get("/users")
async def admin_list_users(db: Database = Depends(get_db)):
    return await list_accounts(db)


@router.patch("/users/{user_id}/role")
async def admin_update_role(user_id: int, body: RoleUpdateIn, db: Database = Depends(get_db)):
    return await change_role(db, user_id, body.role)


@router.patch("/users/{user_id}/ban")
async def admin_update_ban(user_id: int, body: BanIn, db: Database = Depends(get_db)):
    return await change_ban(db, user_id, body.is_banned)


# ==============================================================================
# II. Dashboard
# ==============================================================================
@router.get("/stats")
async def stats(db: Database = Depends(get_db)):
    """
    Counters for the admin dashboard.

    Returns:
        dict: users, pending_users, pending_resources, questions, open_questions, events
    """
    row = await db.fetch_one(
        """SELECT
               (SELECT COUNT(*) FROM users) AS users,
               (SELECT COUNT(*) FROM users WHERE approval_status = 'pending') AS pending_users,
               (SELECT COUNT(*) FROM resources WHERE status = 'pending') AS pending_resources,
               (SELECT COUNT(*) FROM questions) AS questions,
               (SELECT COUNT(*) FROM questions WHERE status = 'open') AS open_questions,
               (SELECT COUNT(*) FROM events) AS events"""
    )
    return row
