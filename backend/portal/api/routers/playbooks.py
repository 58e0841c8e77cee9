# portal/api/routers/playbooks.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse, RedirectResponse

from portal.api.deps import get_db, get_storage, require_admin, require_auth
from portal.api.uploads import MB, has_file, read_upload
from portal.core.db import Database
from portal.core.errors import NotFound, ValidationFailed
from portal.services.storage import extension_of, mime_type_for

router = APIRouter(prefix="/playbooks", tags=["playbooks"])

PLAYBOOK_MAX_BYTES = 50 * MB
PLAYBOOK_EXTS = (".pdf", ".xlsx", ".xls", ".docx", ".doc", ".pptx", ".ppt")


@router.get("")
async def list_playbooks(db: Database = Depends(get_db)):
    return await db.fetch_all(
        """SELECT id, title, brief, framework, category, file_type, file_name, download_count, created_at
           FROM playbooks ORDER BY created_at DESC, id DESC"""
    )


@router.get("/{playbook_id}/download")
async def download_playbook(playbook_id: int, _: dict = Depends(require_auth), db: Database = Depends(get_db),
                            storage=Depends(get_storage)):
    """
    Count a download and hand out the file.

    Remote objects are redirected to; local files are sent as an attachment
    under their original name.
    """
    playbook = await db.fetch_one("SELECT * FROM playbooks WHERE id = ?", [playbook_id])
    if playbook is None:
        raise NotFound("Playbook not found")

    await db.run("UPDATE playbooks SET download_count = download_count + 1 WHERE id = ?", [playbook_id])

    file_path = playbook["file_path"] or ""
    if file_path.startswith("http"):
        return RedirectResponse(file_path, status_code=status.HTTP_302_FOUND)

    location_id = playbook["blob_name"] or file_path.removeprefix("/").removeprefix("uploads/")
    if storage.is_remote or not location_id:
        raise NotFound("File not found on server")
    try:
        path = storage.path_for(location_id)
    except ValueError:
        raise NotFound("File not found on server")
    if not path.is_file():
        raise NotFound("File not found on server")

    return FileResponse(path, filename=playbook["file_name"] or path.name,
                        media_type=mime_type_for(path.name))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_playbook(
    title: Optional[str] = Form(None),
    brief: Optional[str] = Form(None),
    framework: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
    storage=Depends(get_storage),
):
    """Upload a playbook document (pdf, Word, Excel or PowerPoint, up to 50 MB)."""
    if not title or not framework or not has_file(file):
        raise ValidationFailed("Title, framework, and file are required")

    ext = extension_of(file.filename)
    data = await read_upload(file, PLAYBOOK_MAX_BYTES, PLAYBOOK_EXTS, f"File type {ext or '(none)'} not allowed")
    stored = await storage.upload(data, file.filename, file.content_type, hint="playbooks")

    file_type = ext.lstrip(".")
    result = await db.run(
        """INSERT INTO playbooks (title, brief, framework, category, file_path, file_name, file_type, blob_name)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        [title, brief or "", framework, category or "Guide", stored.url, file.filename, file_type,
         stored.location_id],
    )
    return {"id": result.insert_id, "title": title, "framework": framework,
            "category": category or "Guide", "file_type": file_type}


@router.delete("/{playbook_id}")
async def delete_playbook(playbook_id: int, _: dict = Depends(require_admin), db: Database = Depends(get_db),
                          storage=Depends(get_storage)):
    playbook = await db.fetch_one("SELECT blob_name FROM playbooks WHERE id = ?", [playbook_id])
    if playbook is None:
        raise NotFound("Playbook not found")
    await storage.delete(playbook["blob_name"])
    await db.run("DELETE FROM playbooks WHERE id = ?", [playbook_id])
    return {"message": "Playbook deleted"}
