"""
Pydantic schemas for the Q&A and category endpoints.
"""
from typing import Optional

from pydantic import BaseModel

__all__ = ["QuestionIn", "AnswerContentIn", "AnswerIn", "QuestionStatusIn", "CategoryIn"]


class QuestionIn(BaseModel):
    title: Optional[str] = None
    details: Optional[str] = None
    # Guests (no token) identify themselves by email; name is optional
    email: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None  # category name


class AnswerContentIn(BaseModel):
    content: Optional[str] = None


class AnswerIn(BaseModel):
    question_id: Optional[int] = None
    content: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class QuestionStatusIn(BaseModel):
    status: Optional[str] = None  # open | closed | answered


class CategoryIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
