"""
Pydantic schemas for authentication endpoints.

Fields are optional on purpose: handlers check required fields themselves
so a missing value becomes a 400 with a readable message.
"""
from typing import Optional

from pydantic import BaseModel

__all__ = ["RegisterIn", "LoginIn", "ForgotPasswordIn", "ResetPasswordIn"]


class RegisterIn(BaseModel):
    """Self-service registration; also reused by the admin create-user endpoint."""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None  # user | university | company (others fall back to user)
    organization_name: Optional[str] = None
    gst: Optional[str] = None
    pan: Optional[str] = None
    incorporation_number: Optional[str] = None
    phone: Optional[str] = None


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordIn(BaseModel):
    email: Optional[str] = None


class ResetPasswordIn(BaseModel):
    token: Optional[str] = None  # value from the emailed reset link
    password: Optional[str] = None
