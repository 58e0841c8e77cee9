# portal/api/routers/events.py
from fastapi import APIRouter, Depends, status

from portal.api.deps import get_db, require_admin
from portal.core.db import Database
from portal.core.errors import NotFound, ValidationFailed
from portal.models.content import EVENT_TYPES
from portal.schemas.events import EventIn

router = APIRouter(prefix="/events", tags=["events"])

EVENT_COLUMNS = ("title", "date", "location", "link", "type", "category", "is_featured",
                 "teams_link", "recording_url")


def _values(body: EventIn) -> dict:
    """Fields present in the request body, ready for SQL (booleans as 0/1)."""
    values = body.model_dump(exclude_unset=True)
    if values.get("type") is not None and values["type"] not in EVENT_TYPES:
        raise ValidationFailed("Invalid event type")
    if "is_featured" in values:
        values["is_featured"] = 1 if values["is_featured"] else 0
    return values


async def _get_event(db: Database, event_id: int) -> dict:
    row = await db.fetch_one("SELECT * FROM events WHERE id = ?", [event_id])
    if row is None:
        raise NotFound("Event not found")
    return row


@router.get("")
async def list_events(db: Database = Depends(get_db)):
    return await db.fetch_all("SELECT * FROM events ORDER BY is_featured DESC, created_at DESC, id DESC")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(body: EventIn, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    values = _values(body)
    if not (values.get("title") and values.get("date") and values.get("location")):
        raise ValidationFailed("Title, date, and location are required")
    # Let column defaults apply to anything not given
    columns = [c for c in EVENT_COLUMNS if values.get(c) is not None]
    result = await db.run(
        f"INSERT INTO events ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
        [values[c] for c in columns],
    )
    return await _get_event(db, result.insert_id)


@router.put("/{event_id}")
async def update_event(event_id: int, body: EventIn, _: dict = Depends(require_admin),
                       db: Database = Depends(get_db)):
    await _get_event(db, event_id)
    values = _values(body)
    for required in ("title", "date", "location"):
        if required in values and not values[required]:
            raise ValidationFailed(f"{required} cannot be empty")

    columns = [c for c in EVENT_COLUMNS if c in values]
    if columns:
        await db.run(
            f"UPDATE events SET {', '.join(f'{c} = ?' for c in columns)} WHERE id = ?",
            [values[c] for c in columns] + [event_id],
        )
    return await _get_event(db, event_id)


@router.delete("/{event_id}")
async def delete_event(event_id: int, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    result = await db.run("DELETE FROM events WHERE id = ?", [event_id])
    if result.affected_rows == 0:
        raise NotFound("Event not found")
    return {"message": "Event deleted"}
