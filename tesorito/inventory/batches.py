# tesorito/inventory/batches.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from ..errors import ConflictError, NotFoundError
from ..models import MenuItem, Order, OrderItem, OrderStatus, utcnow
from .models_inventory import Ingredient, RecipeItem, SmartBatch

log = logging.getLogger("tesorito.inventory.batches")

DEFAULT_BATCH_NAME = "Standard batch"


def active_batch(session: Session, ingredient_id: int) -> Optional[SmartBatch]:
    return session.exec(
        select(SmartBatch)
        .where(SmartBatch.ingredient_id == ingredient_id, SmartBatch.is_active == True)  # noqa: E712
        .order_by(SmartBatch.started_at.desc())
    ).first()


def list_batches(session: Session, ingredient_id: Optional[int] = None, limit: int = 50) -> List[SmartBatch]:
    stmt = select(SmartBatch)
    if ingredient_id is not None:
        stmt = stmt.where(SmartBatch.ingredient_id == ingredient_id)
    return list(session.exec(stmt.order_by(SmartBatch.started_at.desc(), SmartBatch.id.desc()).limit(limit)).all())


def start_batch(session: Session, ingredient_id: int, name: Optional[str] = None) -> SmartBatch:
    """Apre un nuovo contenitore: chiude prima quelli ancora aperti per lo stesso ingrediente."""
    ing = session.get(Ingredient, ingredient_id)
    if not ing:
        raise NotFoundError("Ingredient not found")

    now = utcnow()
    closed = session.exec(
        update(SmartBatch)
        .where(SmartBatch.ingredient_id == ingredient_id, SmartBatch.is_active == True)  # noqa: E712
        .values(is_active=False, ended_at=now)
        .execution_options(synchronize_session="fetch")
    )
    if closed.rowcount:
        log.info("Closed %d open batch(es) for %s", closed.rowcount, ing.name)

    batch = SmartBatch(
        ingredient_id=ing.id,
        name=(name or "").strip() or DEFAULT_BATCH_NAME,
        started_at=now,
        is_active=True,
    )
    session.add(batch)
    session.flush()
    log.info("Started batch %s (%s) for %s", batch.id, batch.name, ing.name)
    return batch


def compute_yield(session: Session, batch: SmartBatch) -> tuple[Dict[str, int], int]:
    """Quanti piatti (per nome) hanno usato l'ingrediente del batch nella finestra [inizio, fine]."""
    using_ingredient = select(RecipeItem.menu_item_id).where(RecipeItem.ingredient_id == batch.ingredient_id)

    rows = session.exec(
        select(MenuItem.name, OrderItem.quantity)
        .select_from(OrderItem)
        .join(Order, Order.id == OrderItem.order_id)
        .join(MenuItem, MenuItem.id == OrderItem.menu_item_id)
        .where(
            Order.created_at >= batch.started_at,
            Order.created_at <= batch.ended_at,
            Order.status != OrderStatus.CANCELLED,
            OrderItem.menu_item_id.in_(using_ingredient),
        )
        .order_by(OrderItem.id)
    ).all()

    summary: Dict[str, int] = {}
    total = 0
    for name, qty in rows:
        summary[name] = summary.get(name, 0) + int(qty or 0)
        total += int(qty or 0)
    return summary, total


def finish_batch(session: Session, batch_id: int) -> tuple[SmartBatch, Dict[str, int], int]:
    batch = session.get(SmartBatch, batch_id)
    if not batch:
        raise NotFoundError("Batch not found")
    if not batch.is_active:
        raise ConflictError("Batch is already closed")

    batch.ended_at = utcnow()
    summary, total = compute_yield(session, batch)

    batch.final_yield = summary
    batch.total_items = total
    batch.is_active = False
    session.add(batch)
    session.flush()

    log.info("Finished batch %s: %d items %s", batch.id, total, summary)
    return batch, summary, total
