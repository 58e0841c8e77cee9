"""
Pydantic schemas for event endpoints.
"""
from typing import Optional

from pydantic import BaseModel

__all__ = ["EventIn"]


class EventIn(BaseModel):
    """Used for create (title/date/location required) and partial update."""
    title: Optional[str] = None
    date: Optional[str] = None  # free text, e.g. "Saturday 28th February, 2026"
    location: Optional[str] = None
    link: Optional[str] = None
    type: Optional[str] = None  # upcoming | past
    category: Optional[str] = None
    is_featured: Optional[bool] = None
    teams_link: Optional[str] = None
    recording_url: Optional[str] = None
