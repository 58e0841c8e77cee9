"""
Pydantic schemas for user administration endpoints.
"""
from typing import Optional

from pydantic import BaseModel

__all__ = ["RoleUpdateIn", "ApprovalStatusIn", "BanIn"]


class RoleUpdateIn(BaseModel):
    role: Optional[str] = None  # one of portal.models.user.ROLES


class ApprovalStatusIn(BaseModel):
    status: Optional[str] = None  # pending | approved | rejected


class BanIn(BaseModel):
    is_banned: bool = False
