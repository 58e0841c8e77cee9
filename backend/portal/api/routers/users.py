# portal/api/routers/users.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from portal.api.deps import get_db, get_storage, require_admin, require_auth
from portal.api.uploads import MB, has_file, read_upload
from portal.core.db import Database
from portal.core.errors import NotFound, ValidationFailed
from portal.models.user import ADMIN_LIST_COLUMNS, APPROVAL_STATUSES, PROFILE_COLUMNS, ROLES
from portal.schemas.auth import RegisterIn
from portal.schemas.users import ApprovalStatusIn, BanIn, RoleUpdateIn
from portal.services.accounts import create_account

router = APIRouter(prefix="/users", tags=["users"])

PROFILE_IMAGE_EXTS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
PROFILE_IMAGE_MAX_BYTES = 5 * MB


# ==============================================================================
# I. Own account
# ==============================================================================
@router.get("/me/questions")
async def my_questions(user: dict = Depends(require_auth), db: Database = Depends(get_db)):
    return await db.fetch_all(
        """SELECT q.*, (SELECT COUNT(*) FROM answers a WHERE a.question_id = q.id) AS answer_count
           FROM questions q WHERE q.user_id = ? ORDER BY q.created_at DESC, q.id DESC""",
        [user["id"]],
    )


@router.get("/me/answers")
async def my_answers(user: dict = Depends(require_auth), db: Database = Depends(get_db)):
    return await db.fetch_all(
        """SELECT a.*, q.title AS question_title FROM answers a
           JOIN questions q ON a.question_id = q.id
           WHERE a.user_id = ? ORDER BY a.created_at DESC, a.id DESC""",
        [user["id"]],
    )


async def _profile(db: Database, user_id: int) -> dict:
    row = await db.fetch_one(f"SELECT {PROFILE_COLUMNS} FROM users WHERE id = ?", [user_id])
    if row is None:
        raise NotFound("User not found")
    return row


@router.get("/me/profile")
async def my_profile(user: dict = Depends(require_auth), db: Database = Depends(get_db)):
    return await _profile(db, user["id"])


@router.put("/me/profile")
async def update_my_profile(
    name: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    linkedin_url: Optional[str] = Form(None),
    twitter_url: Optional[str] = Form(None),
    website_url: Optional[str] = Form(None),
    organization_name: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None),
    user: dict = Depends(require_auth),
    db: Database = Depends(get_db),
    storage=Depends(get_storage),
):
    """
    Update the caller's own profile (multipart form).

    Only fields present in the form are changed; an empty name is ignored.
    A new profile image replaces the stored one, which is then deleted.

    Raises:
        ValidationFailed (400): Nothing to update, or the image is not jpg/jpeg/png/webp/gif
        PayloadTooLarge (413): Image larger than 5 MB
    """
    updates: list[str] = []
    values: list = []

    if name:
        updates.append("name = ?")
        values.append(name)
    optional_fields = {
        "bio": bio,
        "linkedin_url": linkedin_url,
        "twitter_url": twitter_url,
        "website_url": website_url,
        "organization_name": organization_name,
        "phone": phone,
    }
    for column, value in optional_fields.items():
        if value is not None:
            updates.append(f"{column} = ?")
            values.append(value)

    if has_file(profile_image):
        data = await read_upload(profile_image, PROFILE_IMAGE_MAX_BYTES, PROFILE_IMAGE_EXTS,
                                 "Only jpg, jpeg, png, webp or gif images are allowed")
        previous = await db.fetch_one("SELECT profile_blob_name FROM users WHERE id = ?", [user["id"]])
        stored = await storage.upload(data, profile_image.filename, profile_image.content_type,
                                      hint="profiles")
        if previous and previous["profile_blob_name"]:
            await storage.delete(previous["profile_blob_name"])
        updates += ["profile_image = ?", "profile_blob_name = ?"]
        values += [stored.url, stored.location_id]

    if not updates:
        raise ValidationFailed("No fields to update")

    values.append(user["id"])
    await db.run(f"UPDATE users SET {', '.join(updates)} WHERE id = ?", values)
    return await _profile(db, user["id"])


# ==============================================================================
# II. User administration (admin / executive)
# ==============================================================================
async def list_accounts(db: Database) -> list[dict]:
    return await db.fetch_all(f"SELECT {ADMIN_LIST_COLUMNS} FROM users ORDER BY created_at DESC, id DESC")


async def change_role(db: Database, user_id: int, role: Optional[str]) -> dict:
    if role not in ROLES:
        raise ValidationFailed("Invalid role.")
    result = await db.run("UPDATE users SET role = ? WHERE id = ?", [role, user_id])
    if result.affected_rows == 0:
        raise NotFound("User not found")
    return {"message": f"Role updated to {role}"}


async def change_ban(db: Database, user_id: int, is_banned: bool) -> dict:
    result = await db.run("UPDATE users SET is_banned = ? WHERE id = ?", [1 if is_banned else 0, user_id])
    if result.affected_rows == 0:
        raise NotFound("User not found")
    return {"message": f"User {'banned' if is_banned else 'unbanned'}"}


@router.get("")
async def list_users(_: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return await list_accounts(db)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(body: RegisterIn, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    """Create a pre-approved account; admins may assign any role."""
    role = body.role if body.role in ROLES else "user"
    user_id = await create_account(db, body, role, approval_status="approved")
    return {"message": "User created successfully", "id": user_id}


@router.patch("/{user_id}/role")
async def update_role(user_id: int, body: RoleUpdateIn,
                      _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return await change_role(db, user_id, body.role)


@router.patch("/{user_id}/approval_status")
async def update_approval_status(user_id: int, body: ApprovalStatusIn,
                                 _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    if body.status not in APPROVAL_STATUSES:
        raise ValidationFailed("Invalid approval status")
    result = await db.run("UPDATE users SET approval_status = ? WHERE id = ?", [body.status, user_id])
    if result.affected_rows == 0:
        raise NotFound("User not found")
    return {"message": f"Approval status updated to {body.status}"}


@router.patch("/{user_id}/ban")
async def update_ban(user_id: int, body: BanIn,
                     _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return await change_ban(db, user_id, body.is_banned)


@router.delete("/{user_id}")
async def delete_user(user_id: int, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    result = await db.run("DELETE FROM users WHERE id = ?", [user_id])
    if result.affected_rows == 0:
        raise NotFound("User not found")
    return {"message": "User deleted"}
