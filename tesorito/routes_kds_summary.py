# tesorito/routes_kds_summary.py
from __future__ import annotations

from typing import Annotated, Dict, List

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from .auth import CurrentUser
from .db import get_session_dep
from .models import MenuItem, Order, OrderItem
from .ordering import ACTIVE_STATUSES

router = APIRouter(tags=["kitchen"])

SessionDep = Annotated[Session, Depends(get_session_dep)]


def active_items_summary(session: Session) -> List[dict]:
    """Piatti da preparare raggruppati per menu item (vista "batching" cucina)."""
    rows = session.exec(
        select(OrderItem, Order, MenuItem)
        .join(Order, Order.id == OrderItem.order_id)
        .join(MenuItem, MenuItem.id == OrderItem.menu_item_id)
        .where(Order.status.in_(list(ACTIVE_STATUSES)))
        .order_by(Order.created_at.asc(), OrderItem.id.asc())
    ).all()

    groups: Dict[int, dict] = {}
    for oi, o, mi in rows:
        g = groups.setdefault(int(mi.id), {
            "menu_item_id": int(mi.id),
            "name": mi.name,
            "total_quantity": 0,
            "orders": [],
        })
        g["total_quantity"] += int(oi.quantity)
        g["orders"].append({
            "order_id": int(o.id),
            "order_number": o.order_number,
            "status": o.status.value,
            "table": o.table_number,
            "quantity": int(oi.quantity),
            "notes": oi.notes,
        })

    return sorted(groups.values(), key=lambda g: (-g["total_quantity"], g["name"]))


@router.get("/kitchen/summary")
def kitchen_summary(session: SessionDep, user: CurrentUser):
    return {"items": active_items_summary(session)}
