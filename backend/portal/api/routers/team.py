# portal/api/routers/team.py
import json
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from portal.api.deps import get_db, get_storage, require_admin
from portal.api.uploads import MB, has_file, read_upload
from portal.core.db import Database
from portal.core.errors import NotFound, ValidationFailed
from portal.models.content import DEFAULT_TEAM_CATEGORIES
from portal.services.storage import IMAGE_EXTS

router = APIRouter(prefix="/team", tags=["team"])

TEAM_IMAGE_MAX_BYTES = 10 * MB


def _categories(raw: Optional[str]) -> str:
    """Team categories are stored as a JSON array string, e.g. '["leadership", "advisors"]'."""
    if not raw:
        return DEFAULT_TEAM_CATEGORIES
    try:
        parsed = json.loads(raw)
    except ValueError:
        raise ValidationFailed("categories must be a JSON array of strings")
    if not isinstance(parsed, list) or not all(isinstance(c, str) for c in parsed):
        raise ValidationFailed("categories must be a JSON array of strings")
    return json.dumps(parsed)


async def _store_photo(storage, image: UploadFile):
    data = await read_upload(image, TEAM_IMAGE_MAX_BYTES, IMAGE_EXTS, "Only image files are allowed")
    return await storage.upload(data, image.filename, image.content_type, hint="team")


@router.get("")
async def list_team(db: Database = Depends(get_db)):
    return await db.fetch_all("SELECT * FROM team_members ORDER BY id ASC")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_member(
    name: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    linkedin_url: Optional[str] = Form(None),
    categories: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
    storage=Depends(get_storage),
):
    if not name or not role:
        raise ValidationFailed("Name and role are required")
    categories = _categories(categories)

    image_url, blob_name = "", None
    if has_file(image):
        stored = await _store_photo(storage, image)
        image_url, blob_name = stored.url, stored.location_id

    result = await db.run(
        """INSERT INTO team_members (name, role, description, linkedin_url, image_url, blob_name, categories)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        [name, role, description or "", linkedin_url or "", image_url, blob_name, categories],
    )
    return {"id": result.insert_id, "name": name, "role": role, "description": description or "",
            "linkedin_url": linkedin_url or "", "image_url": image_url, "categories": categories}


@router.put("/{member_id}")
async def update_member(
    member_id: int,
    name: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    linkedin_url: Optional[str] = Form(None),
    categories: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
    storage=Depends(get_storage),
):
    """Replace a team member's details; the photo is kept unless a new image is sent."""
    existing = await db.fetch_one("SELECT * FROM team_members WHERE id = ?", [member_id])
    if existing is None:
        raise NotFound("Team member not found")
    if not name or not role:
        raise ValidationFailed("Name and role are required")
    categories = _categories(categories) if categories else existing["categories"] or DEFAULT_TEAM_CATEGORIES

    image_url, blob_name = existing["image_url"], existing["blob_name"]
    if has_file(image):
        stored = await _store_photo(storage, image)
        await storage.delete(existing["blob_name"])
        image_url, blob_name = stored.url, stored.location_id

    await db.run(
        """UPDATE team_members SET name = ?, role = ?, description = ?, linkedin_url = ?,
               image_url = ?, blob_name = ?, categories = ?
           WHERE id = ?""",
        [name, role, description or "", linkedin_url or "", image_url, blob_name, categories, member_id],
    )
    return {"message": "Team member updated", "image_url": image_url}


@router.delete("/{member_id}")
async def delete_member(member_id: int, _: dict = Depends(require_admin), db: Database = Depends(get_db),
                        storage=Depends(get_storage)):
    existing = await db.fetch_one("SELECT blob_name FROM team_members WHERE id = ?", [member_id])
    if existing is None:
        raise NotFound("Team member not found")
    await storage.delete(existing["blob_name"])
    await db.run("DELETE FROM team_members WHERE id = ?", [member_id])
    return {"message": "Team member deleted"}
