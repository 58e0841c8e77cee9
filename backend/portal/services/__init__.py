"""
Services Module

Provides interfaces for external services:
- Object storage: local disk or an S3-compatible bucket
"""
from .storage import (
    BlobStorage,
    LocalStorage,
    StoredObject,
    build_storage,
    folder_for,
)

__all__ = [
    "BlobStorage",
    "LocalStorage",
    "StoredObject",
    "build_storage",
    "folder_for",
]
