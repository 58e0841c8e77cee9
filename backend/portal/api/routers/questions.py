# portal/api/routers/questions.py
"""
Community Q&A: questions and the answers posted under them.

Anyone may read. Guests may post questions by giving an email address;
answers under /questions/{id}/answers require sign-in (see also the
guest-capable /answers router).
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from portal.api.deps import get_db, is_admin, optional_auth, require_admin, require_auth
from portal.core.db import Database
from portal.core.errors import Forbidden, NotFound, ValidationFailed
from portal.models.content import QUESTION_STATUSES
from portal.schemas.community import AnswerContentIn, QuestionIn, QuestionStatusIn
from portal.services.accounts import resolve_author

router = APIRouter(prefix="/questions", tags=["questions"])

QUESTION_SELECT = """
    SELECT q.*, u.name AS author_name, u.role AS author_role
    FROM questions q JOIN users u ON q.user_id = u.id
"""
ANSWER_SELECT = """
    SELECT a.*, u.name AS author_name, u.role AS author_role
    FROM answers a JOIN users u ON a.user_id = u.id
"""
# Official answers first, then oldest first
ANSWER_ORDER = "ORDER BY a.is_official DESC, a.created_at ASC, a.id ASC"


async def add_answer(db: Database, question_id: int, author_id: int, content: str, official: bool) -> dict:
    """Insert an answer; an official one also marks the question answered."""
    exists = await db.fetch_one("SELECT id FROM questions WHERE id = ?", [question_id])
    if exists is None:
        raise NotFound("Question not found")

    result = await db.run(
        "INSERT INTO answers (question_id, user_id, content, is_official) VALUES (?, ?, ?, ?)",
        [question_id, author_id, content, 1 if official else 0],
    )
    if official:
        await db.run("UPDATE questions SET status = 'answered' WHERE id = ?", [question_id])
    return {"id": result.insert_id, "message": "Answer posted", "is_official": 1 if official else 0}


# NOTE: fixed paths must be declared before /{question_id}
@router.get("/my")
async def my_questions(user: dict = Depends(require_auth), db: Database = Depends(get_db)):
    questions = await db.fetch_all(
        QUESTION_SELECT + " WHERE q.user_id = ? ORDER BY q.created_at DESC, q.id DESC",
        [user["id"]],
    )
    answers = await db.fetch_all(
        """SELECT a.*, u.name AS author_name, q.title AS question_title
           FROM answers a
           JOIN users u ON a.user_id = u.id
           JOIN questions q ON a.question_id = q.id
           WHERE a.user_id = ? ORDER BY a.created_at DESC, a.id DESC""",
        [user["id"]],
    )
    return {"questions": questions, "answers": answers}


@router.get("/search")
async def search_questions(q: Optional[str] = Query(None), db: Database = Depends(get_db)):
    if not q or len(q.strip()) < 2:
        raise ValidationFailed("Query too short")
    term = f"%{q.strip()}%"
    return await db.fetch_all(
        QUESTION_SELECT + " WHERE q.title LIKE ? OR q.details LIKE ? ORDER BY q.created_at DESC, q.id DESC",
        [term, term],
    )


@router.get("")
async def list_questions(db: Database = Depends(get_db)):
    return await db.fetch_all(QUESTION_SELECT + " ORDER BY q.created_at DESC, q.id DESC")


@router.get("/{question_id}")
async def get_question(question_id: int, db: Database = Depends(get_db)):
    question = await db.fetch_one(QUESTION_SELECT + " WHERE q.id = ?", [question_id])
    if question is None:
        raise NotFound("Question not found")
    answers = await db.fetch_all(ANSWER_SELECT + " WHERE a.question_id = ? " + ANSWER_ORDER, [question_id])
    return {**question, "answers": answers}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_question(body: QuestionIn, user: Optional[dict] = Depends(optional_auth),
                          db: Database = Depends(get_db)):
    """
    Post a question as the signed-in user, or as a guest identified by email.

    Raises:
        ValidationFailed (400): Missing title, or a guest without an email
    """
    title = (body.title or "").strip()
    if not title:
        raise ValidationFailed("Title is required")

    author_id = await resolve_author(db, user, body.email, body.name)

    category_id = None
    if body.category:
        category = await db.fetch_one("SELECT id FROM categories WHERE name = ?", [body.category])
        if category:
            category_id = category["id"]

    result = await db.run(
        "INSERT INTO questions (user_id, category_id, title, details) VALUES (?, ?, ?, ?)",
        [author_id, category_id, title, body.details or None],
    )
    return {"id": result.insert_id, "message": "Question posted"}


@router.delete("/{question_id}")
async def delete_question(question_id: int, user: dict = Depends(require_auth), db: Database = Depends(get_db)):
    """Owner or admin/executive only; answers go with the question."""
    row = await db.fetch_one("SELECT user_id FROM questions WHERE id = ?", [question_id])
    if row is None:
        raise NotFound("Question not found")
    if row["user_id"] != user["id"] and not is_admin(user):
        raise Forbidden("Not authorized")

    await db.run("DELETE FROM questions WHERE id = ?", [question_id])
    return {"message": "Question deleted"}


@router.get("/{question_id}/answers")
async def list_answers(question_id: int, db: Database = Depends(get_db)):
    return await db.fetch_all(ANSWER_SELECT + " WHERE a.question_id = ? " + ANSWER_ORDER, [question_id])


@router.post("/{question_id}/answers", status_code=status.HTTP_201_CREATED)
async def answer_question(question_id: int, body: AnswerContentIn, user: dict = Depends(require_auth),
                          db: Database = Depends(get_db)):
    """Answers from admins/executives are official and mark the question answered."""
    content = (body.content or "").strip()
    if not content:
        raise ValidationFailed("Answer content is required")
    return await add_answer(db, question_id, user["id"], content, official=is_admin(user))


@router.patch("/{question_id}/status")
async def update_status(question_id: int, body: QuestionStatusIn, _: dict = Depends(require_admin),
                        db: Database = Depends(get_db)):
    if body.status not in QUESTION_STATUSES:
        raise ValidationFailed("Invalid status")
    result = await db.run("UPDATE questions SET status = ? WHERE id = ?", [body.status, question_id])
    if result.affected_rows == 0:
        raise NotFound("Question not found")
    return {"message": "Status updated"}
