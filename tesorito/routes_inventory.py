# tesorito/routes_inventory.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from .auth import CurrentUser, ManagerUser, StockUser
from .config import AppConfig, get_config
from .db import get_session_dep
from .errors import ConflictError, NotFoundError
from .inventory.batches import active_batch, finish_batch, list_batches, start_batch
from .inventory.deduction import adjust_stock, deduct_inventory_for_order, low_stock_ingredients, round_qty, usage_history
from .inventory.models_inventory import Ingredient, SmartBatch, StockAdjustment
from .models import utcnow
from .schemas import DeductIn, IngredientIn, IngredientUpdate, SmartBatchStart, StockAdjustIn

router = APIRouter(prefix="/api/inventory", tags=["inventory"])

SessionDep = Annotated[Session, Depends(get_session_dep)]
ConfigDep = Annotated[AppConfig, Depends(get_config)]

RECENT_ADJUSTMENTS = 5


def _ingredient_payload(ing: Ingredient, recent: Optional[list] = None) -> dict:
    data = ing.model_dump(mode="json")
    data["is_low_stock"] = ing.current_stock <= ing.minimum_stock
    if recent is not None:
        data["recent_adjustments"] = [a.model_dump(mode="json") for a in recent]
    return data


def _batch_payload(batch: Optional[SmartBatch], session: Session) -> Optional[dict]:
    if batch is None:
        return None
    data = batch.model_dump(mode="json")
    ing = session.get(Ingredient, batch.ingredient_id)
    data["ingredient"] = ing.model_dump(mode="json") if ing else None
    return data


# ---------------------------------------------------------------------------
# Ingredienti
# ---------------------------------------------------------------------------

@router.get("")
def inventory_list(session: SessionDep, user: CurrentUser, low_stock: bool = Query(False)):
    if low_stock:
        return {"ingredients": [_ingredient_payload(i) for i in low_stock_ingredients(session)]}

    ingredients = session.exec(select(Ingredient).order_by(Ingredient.name)).all()
    out = []
    for ing in ingredients:
        recent = session.exec(
            select(StockAdjustment)
            .where(StockAdjustment.ingredient_id == ing.id)
            .order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
            .limit(RECENT_ADJUSTMENTS)
        ).all()
        out.append(_ingredient_payload(ing, list(recent)))
    return {"ingredients": out}


@router.post("", status_code=201)
def inventory_create(body: IngredientIn, session: SessionDep, user: ManagerUser):
    name = body.name.strip()
    if session.exec(select(Ingredient).where(Ingredient.name == name)).first():
        raise ConflictError(f"Ingredient {name} already exists")

    ing = Ingredient(
        name=name,
        unit=body.unit.strip(),
        current_stock=round_qty(body.current_stock),
        minimum_stock=round_qty(body.minimum_stock),
        cost_per_unit_cents=body.cost_per_unit_cents,
    )
    session.add(ing)
    session.commit()
    session.refresh(ing)
    return {"ingredient": _ingredient_payload(ing)}


@router.put("/{ingredient_id:int}")
def inventory_update(ingredient_id: int, body: IngredientUpdate, session: SessionDep, user: ManagerUser):
    """Solo anagrafica: lo stock si muove con /adjust o con le deduzioni."""
    ing = session.get(Ingredient, ingredient_id)
    if not ing:
        raise NotFoundError("Ingredient not found")

    name = body.name.strip()
    clash = session.exec(select(Ingredient).where(Ingredient.name == name, Ingredient.id != ingredient_id)).first()
    if clash:
        raise ConflictError(f"Ingredient {name} already exists")

    ing.name = name
    ing.unit = body.unit.strip()
    ing.minimum_stock = round_qty(body.minimum_stock)
    ing.cost_per_unit_cents = body.cost_per_unit_cents
    ing.updated_at = utcnow()
    session.add(ing)
    session.commit()
    return {"ingredient": _ingredient_payload(ing)}


@router.patch("/adjust")
def inventory_adjust(body: StockAdjustIn, session: SessionDep, user: StockUser):
    ing, previous = adjust_stock(session, body.ingredient_id, body.adjustment, body.reason, user_id=user.id)
    session.commit()
    return {
        "success": True,
        "ingredient": _ingredient_payload(ing),
        "previous_stock": previous,
        "new_stock": ing.current_stock,
    }


@router.post("/deduct")
def inventory_deduct(body: DeductIn, session: SessionDep, config: ConfigDep, user: StockUser):
    result = deduct_inventory_for_order(session, body.order_id, config.inventory.stock_policy, user_id=user.id)
    session.commit()
    return {"success": True, "message": "Inventory deducted successfully", **result.to_dict()}


# ---------------------------------------------------------------------------
# Smart batch
# ---------------------------------------------------------------------------

@router.get("/smart-batch")
def smart_batch_active(session: SessionDep, user: CurrentUser, ingredient_id: int = Query(...)):
    return {"active_batch": _batch_payload(active_batch(session, ingredient_id), session)}


@router.get("/smart-batch/history")
def smart_batch_history(
    session: SessionDep,
    user: CurrentUser,
    ingredient_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=500),
):
    return {"batches": [_batch_payload(b, session) for b in list_batches(session, ingredient_id, limit)]}


@router.post("/smart-batch", status_code=201)
def smart_batch_start(body: SmartBatchStart, session: SessionDep, user: StockUser):
    batch = start_batch(session, body.ingredient_id, body.name)
    session.commit()
    return {"batch": _batch_payload(batch, session)}


@router.post("/smart-batch/{batch_id}/finish")
def smart_batch_finish(batch_id: int, session: SessionDep, user: StockUser):
    batch, summary, total = finish_batch(session, batch_id)
    session.commit()
    return {
        "success": True,
        "batch": _batch_payload(batch, session),
        "summary": summary,
        "total_items": total,
    }


# registrata dopo /smart-batch/*
@router.get("/{ingredient_id:int}/history")
def inventory_history(
    ingredient_id: int,
    session: SessionDep,
    user: CurrentUser,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
):
    rows = usage_history(session, ingredient_id, start, end)
    return {"adjustments": [a.model_dump(mode="json") for a in rows]}
