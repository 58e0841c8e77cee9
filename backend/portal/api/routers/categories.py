# portal/api/routers/categories.py
from fastapi import APIRouter, Depends, status

from portal.api.deps import get_db, require_admin
from portal.core.db import Database
from portal.core.errors import NotFound, ValidationFailed
from portal.schemas.community import CategoryIn

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("")
async def list_categories(db: Database = Depends(get_db)):
    return await db.fetch_all("SELECT * FROM categories ORDER BY name ASC")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(body: CategoryIn, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    name = (body.name or "").strip()
    if not name:
        raise ValidationFailed("Name required")
    description = body.description or None
    result = await db.run("INSERT INTO categories (name, description) VALUES (?, ?)", [name, description])
    return {"id": result.insert_id, "name": name, "description": description}


@router.delete("/{category_id}")
async def delete_category(category_id: int, _: dict = Depends(require_admin), db: Database = Depends(get_db)):
    # Questions keep existing; their category_id is set to NULL by the foreign key
    result = await db.run("DELETE FROM categories WHERE id = ?", [category_id])
    if result.affected_rows == 0:
        raise NotFound("Category not found")
    return {"message": "Category deleted"}
