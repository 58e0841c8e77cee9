# portal/api/routers/answers.py
from typing import Optional

from fastapi import APIRouter, Depends, status

from portal.api.deps import get_db, is_admin, optional_auth, require_auth
from portal.api.routers.questions import add_answer
from portal.core.db import Database
from portal.core.errors import Forbidden, NotFound, ValidationFailed
from portal.schemas.community import AnswerIn
from portal.services.accounts import resolve_author

router = APIRouter(prefix="/answers", tags=["answers"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_answer(body: AnswerIn, user: Optional[dict] = Depends(optional_auth),
                        db: Database = Depends(get_db)):
    """
    Post an answer as the signed-in user or as a guest identified by email.

    Raises:
        ValidationFailed (400): Missing question_id/content, or a guest without an email
        NotFound (404): Question does not exist
    """
    content = (body.content or "").strip()
    if not body.question_id or not content:
        raise ValidationFailed("question_id and content are required")

    author_id = await resolve_author(db, user, body.email, body.name)
    return await add_answer(db, body.question_id, author_id, content, official=is_admin(user))


@router.delete("/{answer_id}")
async def delete_answer(answer_id: int, user: dict = Depends(require_auth), db: Database = Depends(get_db)):
    row = await db.fetch_one("SELECT user_id FROM answers WHERE id = ?", [answer_id])
    if row is None:
        raise NotFound("Answer not found")
    if row["user_id"] != user["id"] and not is_admin(user):
        raise Forbidden("Not authorized")

    await db.run("DELETE FROM answers WHERE id = ?", [answer_id])
    return {"message": "Answer deleted"}
