# tesorito/routes_menu.py
from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete
from sqlmodel import Session, select, func

from .auth import CurrentUser, ManagerUser
from .db import get_session_dep
from .errors import ConflictError, NotFoundError
from .inventory.models_inventory import Ingredient, RecipeItem
from .models import MenuItem, OrderItem, utcnow
from .schemas import MenuItemIn, RecipeItemIn, RecipeItemUpdate

router = APIRouter(tags=["menu"])

SessionDep = Annotated[Session, Depends(get_session_dep)]


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------

@router.get("/api/menu")
def menu_list(session: SessionDep, user: CurrentUser, available: Optional[bool] = Query(None)):
    stmt = select(MenuItem)
    if available is not None:
        stmt = stmt.where(MenuItem.is_available == available)
    items = session.exec(stmt.order_by(func.lower(MenuItem.name))).all()
    return {"items": [m.model_dump(mode="json") for m in items]}


@router.post("/api/menu", status_code=201)
def menu_create(body: MenuItemIn, session: SessionDep, user: ManagerUser):
    item = MenuItem(**body.model_dump())
    session.add(item)
    session.commit()
    session.refresh(item)
    return {"item": item.model_dump(mode="json")}


@router.put("/api/menu/{item_id}")
def menu_update(item_id: int, body: MenuItemIn, session: SessionDep, user: ManagerUser):
    item = session.get(MenuItem, item_id)
    if not item:
        raise NotFoundError("Menu item not found")
    for k, v in body.model_dump().items():
        setattr(item, k, v)
    item.updated_at = utcnow()
    session.add(item)
    session.commit()
    return {"item": item.model_dump(mode="json")}


@router.delete("/api/menu/{item_id}")
def menu_delete(item_id: int, session: SessionDep, user: ManagerUser):
    item = session.get(MenuItem, item_id)
    if not item:
        raise NotFoundError("Menu item not found")

    # i prezzi storici restano sulle righe ordine: non cancelliamo piatti già venduti
    sold = session.exec(select(OrderItem.id).where(OrderItem.menu_item_id == item_id)).first()
    if sold:
        raise ConflictError("Menu item has orders; mark it unavailable instead")

    session.exec(delete(RecipeItem).where(RecipeItem.menu_item_id == item_id))
    session.delete(item)
    session.commit()
    return {"success": True}


# ---------------------------------------------------------------------------
# Ricette
# ---------------------------------------------------------------------------

def _recipe_payload(ri: RecipeItem, ing: Optional[Ingredient]) -> dict:
    data = ri.model_dump(mode="json")
    data["ingredient"] = ing.model_dump(mode="json") if ing else None
    return data


@router.get("/api/recipes")
def recipes_list(session: SessionDep, user: CurrentUser, menu_item_id: int = Query(...)):
    rows = session.exec(
        select(RecipeItem, Ingredient)
        .where(RecipeItem.menu_item_id == menu_item_id)
        .join(Ingredient, Ingredient.id == RecipeItem.ingredient_id)
        .order_by(Ingredient.name)
    ).all()
    return {"recipe_items": [_recipe_payload(ri, ing) for ri, ing in rows]}


@router.post("/api/recipes", status_code=201)
def recipes_create(body: RecipeItemIn, session: SessionDep, user: ManagerUser):
    if not session.get(MenuItem, body.menu_item_id):
        raise NotFoundError("Menu item not found")
    ing = session.get(Ingredient, body.ingredient_id)
    if not ing:
        raise NotFoundError("Ingredient not found")

    exists = session.exec(
        select(RecipeItem).where(
            RecipeItem.menu_item_id == body.menu_item_id,
            RecipeItem.ingredient_id == body.ingredient_id,
        )
    ).first()
    if exists:
        raise ConflictError(f"{ing.name} is already in this recipe")

    ri = RecipeItem(**body.model_dump())
    session.add(ri)
    session.commit()
    session.refresh(ri)
    return {"recipe_item": _recipe_payload(ri, ing)}


@router.put("/api/recipes/{recipe_item_id}")
def recipes_update(recipe_item_id: int, body: RecipeItemUpdate, session: SessionDep, user: ManagerUser):
    ri = session.get(RecipeItem, recipe_item_id)
    if not ri:
        raise NotFoundError("Recipe item not found")
    ri.quantity_required = body.quantity_required
    session.add(ri)
    session.commit()
    return {"recipe_item": _recipe_payload(ri, session.get(Ingredient, ri.ingredient_id))}


@router.delete("/api/recipes/{recipe_item_id}")
def recipes_delete(recipe_item_id: int, session: SessionDep, user: ManagerUser):
    ri = session.get(RecipeItem, recipe_item_id)
    if not ri:
        raise NotFoundError("Recipe item not found")
    session.delete(ri)
    session.commit()
    return {"success": True}
