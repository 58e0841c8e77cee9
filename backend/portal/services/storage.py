"""
Object storage for uploaded files.

Files are grouped into folders by upload context and extension:
    videos/               mp4, webm, mov, avi, mkv, m4v
    images/resources      jpg, jpeg, png, gif, webp, svg, bmp, ico (resource uploads)
    images/profiles       user profile images
    images/team           team member photos
    documents/resources   pdf, docx, xlsx, ... (resource uploads)
    documents/playbooks   playbook files
    misc/                 anything else

Two backends share one interface:
- LocalStorage: files under UPLOADS_PATH, served by the app at /uploads
- BlobStorage: an S3-compatible bucket through boto3 (selected when BLOB_BUCKET is set)
"""
import asyncio
import logging
import re
import time
import uuid
from dataclasses import dataclass
from functools import partial
from pathlib import Path, PurePosixPath
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from portal.core.errors import UpstreamUnavailable

logger = logging.getLogger("uvicorn.error")

VIDEO_EXTS = frozenset({".mp4", ".webm", ".mov", ".avi", ".mkv", ".m4v"})
IMAGE_EXTS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".ico"})
DOC_EXTS = frozenset({".pdf", ".docx", ".doc", ".xlsx", ".xls", ".pptx", ".ppt", ".txt", ".csv"})

# Upload contexts that map to a fixed folder whatever the file type
CONTEXT_FOLDERS = {
    "playbooks": "documents/playbooks",
    "profiles": "images/profiles",
    "team": "images/team",
}

MIME_MAP = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".m4v": "video/mp4",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".bmp": "image/bmp",
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".ppt": "application/vnd.ms-powerpoint",
    ".txt": "text/plain",
    ".csv": "text/csv",
}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def extension_of(original_name: str) -> str:
    return PurePosixPath(original_name or "").suffix.lower()


def folder_for(original_name: str, hint: str = "resources") -> str:
    """
    Pick the storage folder for an upload.

    Args:
        original_name: Client-side file name (only its extension is used)
        hint: Upload context: 'resources' | 'playbooks' | 'profiles' | 'team'

    Returns:
        Folder path such as 'videos' or 'documents/playbooks'
    """
    # Named contexts win over extension-based detection
    if hint in CONTEXT_FOLDERS:
        return CONTEXT_FOLDERS[hint]

    ext = extension_of(original_name)
    if ext in VIDEO_EXTS:
        return "videos"
    if ext in IMAGE_EXTS:
        return "images/resources"
    if ext in DOC_EXTS:
        return "documents/resources"
    return "misc"


def mime_type_for(original_name: str, provided: Optional[str] = None) -> str:
    if provided and provided != "application/octet-stream":
        return provided
    return MIME_MAP.get(extension_of(original_name), "application/octet-stream")


def location_id_for(original_name: str, hint: str = "resources") -> str:
    """Unique object name, e.g. videos/1740000000000-a1b2c3d4-my_video.mp4"""
    ext = extension_of(original_name)
    stem = PurePosixPath(original_name or "file").stem
    base = _UNSAFE_CHARS.sub("_", stem)[:60] or "file"
    stamp = int(time.time() * 1000)
    return f"{folder_for(original_name, hint)}/{stamp}-{uuid.uuid4().hex[:8]}-{base}{ext}"


@dataclass(frozen=True)
class StoredObject:
    location_id: str  # key inside the store; persisted in *_blob_name columns
    url: str          # what clients use to fetch the file
    folder: str


class LocalStorage:
    """Files on local disk, exposed under ``url_prefix`` by the static mount."""

    is_remote = False

    def __init__(self, root: str | Path, url_prefix: str = "/uploads"):
        self.root = Path(root).resolve()
        self.url_prefix = url_prefix.rstrip("/")

    def path_for(self, location_id: str) -> Path:
        path = (self.root / location_id).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f"location outside storage root: {location_id}")
        return path

    def url_for(self, location_id: str) -> str:
        return f"{self.url_prefix}/{location_id}"

    async def upload(self, data: bytes, original_name: str, mime_type: Optional[str] = None,
                     hint: str = "resources") -> StoredObject:
        location_id = location_id_for(original_name, hint)
        path = self.path_for(location_id)

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.get_running_loop().run_in_executor(None, _write)
        logger.info("[storage] Saved -> %s (%d bytes)", path, len(data))
        return StoredObject(location_id=location_id, url=self.url_for(location_id),
                            folder=folder_for(original_name, hint))

    async def delete(self, location_id: Optional[str]) -> None:
        if not location_id:
            return
        try:
            path = self.path_for(location_id)
            await asyncio.get_running_loop().run_in_executor(None, partial(path.unlink, missing_ok=True))
            logger.info("[storage] Deleted -> %s", path)
        except (OSError, ValueError) as e:
            logger.error("[storage] Delete failed for %s: %s", location_id, e)


class BlobStorage:
    """Objects in an S3-compatible bucket."""

    is_remote = True

    def __init__(self, client, bucket: str, public_base_url: Optional[str] = None):
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def url_for(self, location_id: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{location_id}"
        endpoint = self.client.meta.endpoint_url.rstrip("/")
        return f"{endpoint}/{self.bucket}/{location_id}"

    async def upload(self, data: bytes, original_name: str, mime_type: Optional[str] = None,
                     hint: str = "resources") -> StoredObject:
        location_id = location_id_for(original_name, hint)
        content_type = mime_type_for(original_name, mime_type)
        put = partial(
            self.client.put_object,
            Bucket=self.bucket,
            Key=location_id,
            Body=data,
            ContentType=content_type,
        )
        try:
            await asyncio.get_running_loop().run_in_executor(None, put)
        except (BotoCoreError, ClientError) as e:
            logger.error("[storage] Upload failed for %s: %s", location_id, e)
            raise UpstreamUnavailable() from e
        logger.info("[storage] Uploaded -> %s (%s)", location_id, content_type)
        return StoredObject(location_id=location_id, url=self.url_for(location_id),
                            folder=folder_for(original_name, hint))

    async def delete(self, location_id: Optional[str]) -> None:
        if not location_id:
            return
        remove = partial(self.client.delete_object, Bucket=self.bucket, Key=location_id)
        try:
            await asyncio.get_running_loop().run_in_executor(None, remove)
            logger.info("[storage] Deleted -> %s", location_id)
        except (BotoCoreError, ClientError) as e:
            logger.error("[storage] Delete failed for %s: %s", location_id, e)


def get_s3_client(settings):
    """S3 client configured for Signature V4 from BLOB_* settings."""
    return boto3.client(
        "s3",
        aws_access_key_id=settings.blob_access_key,
        aws_secret_access_key=settings.blob_secret_key,
        region_name=settings.blob_region,
        endpoint_url=settings.blob_endpoint_url,
        config=Config(signature_version="s3v4"),
    )


def build_storage(settings):
    if settings.blob_bucket:
        logger.info("[storage] Blob storage ready - bucket: %s", settings.blob_bucket)
        return BlobStorage(get_s3_client(settings), settings.blob_bucket, settings.blob_public_base_url)
    logger.info("[storage] No BLOB_BUCKET - using local disk at %s", settings.uploads_path)
    return LocalStorage(settings.uploads_path)
