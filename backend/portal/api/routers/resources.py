# portal/api/routers/resources.py
"""
Resource library: articles, guides, videos, documents.

Visibility:
- members, executives and admins see "members" resources; everyone else only "public"
- admins and executives see every review status; everyone else only approved ones
"""
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import RedirectResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from portal.api.deps import get_db, get_storage, is_admin, optional_auth, require_admin, require_auth
from portal.api.uploads import MB, has_file, read_upload
from portal.core.db import Database
from portal.core.errors import NotFound, UpstreamUnavailable, ValidationFailed
from portal.models.content import ACCESS_LEVELS, RESOURCE_TYPES
from portal.models.user import CONTENT_ROLES
from portal.services.storage import extension_of, mime_type_for

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/resources", tags=["resources"])

RESOURCE_MAX_BYTES = 500 * MB
RESOURCE_EXTS = (
    ".pdf", ".docx", ".doc", ".xlsx", ".pptx",
    ".mp4", ".webm", ".mov", ".avi",
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
)
# Upstream headers passed through by the stream proxy
STREAM_HEADERS = ("content-type", "content-length", "content-range", "accept-ranges", "cache-control")


def visibility_filter(user: Optional[dict]) -> tuple[str, list]:
    """SQL conditions (joined with AND) limiting resources to what ``user`` may see."""
    clauses, params = [], []
    if not (user and user.get("role") in CONTENT_ROLES):
        clauses.append("access_level = ?")
        params.append("public")
    if not is_admin(user):
        clauses.append("(status = ? OR status IS NULL)")
        params.append("approved")
    return " AND ".join(clauses) or "1=1", params


async def _get_resource(db: Database, resource_id: int) -> dict:
    row = await db.fetch_one("SELECT * FROM resources WHERE id = ?", [resource_id])
    if row is None:
        raise NotFound("Resource not found")
    return row


def _check_choices(resource_type: Optional[str], access_level: Optional[str]) -> None:
    if resource_type and resource_type not in RESOURCE_TYPES:
        raise ValidationFailed("Invalid resource type")
    if access_level and access_level not in ACCESS_LEVELS:
        raise ValidationFailed("Invalid access level")


async def _store(storage, upload: UploadFile):
    data = await read_upload(upload, RESOURCE_MAX_BYTES, RESOURCE_EXTS,
                             f"File type {extension_of(upload.filename) or '(none)'} is not allowed")
    stored = await storage.upload(data, upload.filename, upload.content_type, hint="resources")
    return stored, mime_type_for(upload.filename, upload.content_type)


# ==============================================================================
# I. Listing & reading
# ==============================================================================
@router.get("")
async def list_resources(resource_type: Optional[str] = Query(None, alias="type"),
                         user: Optional[dict] = Depends(optional_auth),
                         db: Database = Depends(get_db)):
    where, params = visibility_filter(user)
    if resource_type:
        where += " AND type = ?"
        params.append(resource_type)
    return await db.fetch_all(f"SELECT * FROM resources WHERE {where} ORDER BY created_at DESC, id DESC", params)


@router.get("/videos")
async def list_videos(db: Database = Depends(get_db)):
    """Public, approved videos for the home page carousel."""
    return await db.fetch_all(
        """SELECT id, title, summary, file_path, source_url, thumbnail_url, created_at
           FROM resources
           WHERE type = 'video' AND access_level = 'public' AND (status = 'approved' OR status IS NULL)
           ORDER BY created_at DESC, id DESC"""
    )


@router.get("/pending")
async def list_pending(_: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return await db.fetch_all("SELECT * FROM resources WHERE status = 'pending' ORDER BY created_at DESC, id DESC")


@router.get("/{resource_id}")
async def get_resource(resource_id: int, user: Optional[dict] = Depends(optional_auth),
                       db: Database = Depends(get_db)):
    where, params = visibility_filter(user)
    row = await db.fetch_one(f"SELECT * FROM resources WHERE id = ? AND {where}", [resource_id, *params])
    if row is None:
        raise NotFound("Resource not found")
    return row


@router.get("/{resource_id}/stream")
async def stream_resource(resource_id: int, request: Request, user: Optional[dict] = Depends(optional_auth),
                          db: Database = Depends(get_db)):
    """
    Play a resource's file.

    Local files are served by the static mount, so this just redirects.
    Remote files are proxied so the browser can issue Range requests without
    hitting the bucket's CORS rules. Same visibility rules as reading the resource.
    """
    where, params = visibility_filter(user)
    row = await db.fetch_one(f"SELECT file_path FROM resources WHERE id = ? AND {where}", [resource_id, *params])
    if row is None or not row["file_path"]:
        raise NotFound("Not found")

    file_url = row["file_path"]
    if not file_url.startswith("http"):
        return RedirectResponse(file_url, status_code=status.HTTP_302_FOUND)

    headers = {}
    if request.headers.get("range"):
        headers["Range"] = request.headers["range"]

    client = httpx.AsyncClient(transport=request.app.state.stream_transport, timeout=httpx.Timeout(30.0, read=None))
    try:
        upstream = await client.send(client.build_request("GET", file_url, headers=headers), stream=True)
    except httpx.HTTPError as e:
        await client.aclose()
        logger.error("[resources/stream] Upstream fetch failed for %s: %s", file_url, e)
        raise UpstreamUnavailable("Stream error") from e

    if upstream.status_code >= 400:
        await upstream.aclose()
        await client.aclose()
        return Response(status_code=upstream.status_code)

    async def _close():
        await upstream.aclose()
        await client.aclose()

    forwarded = {h: upstream.headers[h] for h in STREAM_HEADERS if h in upstream.headers}
    return StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        headers=forwarded,
        background=BackgroundTask(_close),
    )


# ==============================================================================
# II. Submission & moderation
# ==============================================================================
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_resource(
    title: Optional[str] = Form(None),
    summary: Optional[str] = Form(None),
    resource_type: Optional[str] = Form(None, alias="type"),
    access_level: Optional[str] = Form(None),
    source_url: Optional[str] = Form(None),
    category_slug: Optional[str] = Form(None),
    thumbnail_url: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: dict = Depends(require_auth),
    db: Database = Depends(get_db),
    storage=Depends(get_storage),
):
    """
    Submit a resource (multipart form, optional file up to 500 MB).

    Submissions from admins/executives are published immediately; everyone
    else's wait in the "pending" queue for review.
    """
    if not title or not summary:
        raise ValidationFailed("Title and summary are required")
    resource_type = resource_type or "article"
    access = access_level or "public"
    _check_choices(resource_type, access)

    file_path = blob_name = file_type = None
    if has_file(file):
        stored, file_type = await _store(storage, file)
        file_path, blob_name = stored.url, stored.location_id

    review_status = "approved" if is_admin(user) else "pending"
    result = await db.run(
        """INSERT INTO resources
               (title, summary, type, access_level, source_url, category_slug,
                file_path, file_type, blob_name, thumbnail_url, status, user_id)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        [title, summary, resource_type, access, source_url or None, category_slug or None,
         file_path, file_type, blob_name, thumbnail_url or None, review_status, user["id"]],
    )
    return {
        "id": result.insert_id,
        "title": title,
        "summary": summary,
        "type": resource_type,
        "access_level": access,
        "file_path": file_path,
        "source_url": source_url or None,
        "status": review_status,
    }


@router.put("/{resource_id}")
async def update_resource(
    resource_id: int,
    title: Optional[str] = Form(None),
    summary: Optional[str] = Form(None),
    resource_type: Optional[str] = Form(None, alias="type"),
    access_level: Optional[str] = Form(None),
    source_url: Optional[str] = Form(None),
    category_slug: Optional[str] = Form(None),
    thumbnail_url: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    _: dict = Depends(require_admin),
    db: Database = Depends(get_db),
    storage=Depends(get_storage),
):
    """Partial update; fields left out keep their value. A new file replaces the old object."""
    existing = await _get_resource(db, resource_id)
    _check_choices(resource_type, access_level)

    file_path, blob_name, file_type = existing["file_path"], existing["blob_name"], existing["file_type"]
    if has_file(file):
        stored, file_type = await _store(storage, file)
        await storage.delete(existing["blob_name"])
        file_path, blob_name = stored.url, stored.location_id

    def pick(new, column):
        return existing[column] if new is None else (new or None)

    await db.run(
        """UPDATE resources SET title = ?, summary = ?, type = ?, access_level = ?,
               source_url = ?, category_slug = ?, thumbnail_url = ?,
               file_path = ?, file_type = ?, blob_name = ?
           WHERE id = ?""",
        [title or existing["title"], pick(summary, "summary"), resource_type or existing["type"],
         access_level or existing["access_level"], pick(source_url, "source_url"),
         pick(category_slug, "category_slug"), pick(thumbnail_url, "thumbnail_url"),
         file_path, file_type, blob_name, resource_id],
    )
    return await _get_resource(db, resource_id)


@router.delete("/{resource_id}")
async def delete_resource(resource_id: int, _: dict = Depends(require_admin), db: Database = Depends(get_db),
                          storage=Depends(get_storage)):
    existing = await _get_resource(db, resource_id)
    await storage.delete(existing["blob_name"])
    await db.run("DELETE FROM resources WHERE id = ?", [resource_id])
    return {"message": "Resource deleted"}


async def _set_review_status(db: Database, resource_id: int, review_status: str) -> None:
    result = await db.run("UPDATE resources SET status = ? WHERE id = ?", [review_status, resource_id])
    if result.affected_rows == 0:
        raise NotFound("Resource not found")


@router.patch("/{resource_id}/approve")
async def approve_resource(resource_id: int, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    await _set_review_status(db, resource_id, "approved")
    return {"message": "Resource approved"}


@router.patch("/{resource_id}/reject")
async def reject_resource(resource_id: int, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    await _set_review_status(db, resource_id, "rejected")
    return {"message": "Resource rejected"}


@router.post("/{resource_id}/download")
async def count_download(resource_id: int, _: Optional[dict] = Depends(optional_auth),
                         db: Database = Depends(get_db)):
    result = await db.run("UPDATE resources SET download_count = download_count + 1 WHERE id = ?", [resource_id])
    if result.affected_rows == 0:
        raise NotFound("Resource not found")
    return {"ok": True}
