# portal/api/uploads.py
"""
Multipart upload checks shared by the routers that accept files.
"""
from typing import Iterable, Optional

from fastapi import UploadFile

from portal.core.errors import PayloadTooLarge, ValidationFailed
from portal.services.storage import extension_of

MB = 1024 * 1024
_CHUNK = 1024 * 1024


def has_file(upload: Optional[UploadFile]) -> bool:
    # Browsers send an empty part with no filename when the input is left blank
    return upload is not None and bool(upload.filename)


async def read_upload(upload: UploadFile, max_bytes: int,
                      allowed_exts: Optional[Iterable[str]] = None,
                      rejected_message: str = "File type not allowed") -> bytes:
    """
    Read an uploaded file into memory after checking its extension and size.

    Args:
        upload: File part from the multipart form
        max_bytes: Largest accepted size
        allowed_exts: Lower-case extensions including the dot; None accepts any
        rejected_message: Error message for a disallowed extension

    Raises:
        ValidationFailed (400): Extension not in ``allowed_exts``
        PayloadTooLarge (413): File larger than ``max_bytes``
    """
    if allowed_exts is not None and extension_of(upload.filename) not in set(allowed_exts):
        raise ValidationFailed(rejected_message)

    chunks = []
    size = 0
    while True:
        chunk = await upload.read(_CHUNK)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise PayloadTooLarge()
        chunks.append(chunk)
    return b"".join(chunks)
