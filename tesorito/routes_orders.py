# tesorito/routes_orders.py
from __future__ import annotations

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlmodel import Session

from .auth import CurrentUser
from .config import AppConfig, get_config
from .db import get_session_dep
from .errors import InvalidRequestError, NotFoundError
from .models import Order, OrderStatus
from .ordering import add_items, change_status, create_order, list_orders, order_payload
from .schemas import OrderCreate, OrderItemsAdd, OrderStatusUpdate
from .ws import notify_order

router = APIRouter(prefix="/api/orders", tags=["orders"])

SessionDep = Annotated[Session, Depends(get_session_dep)]
ConfigDep = Annotated[AppConfig, Depends(get_config)]


def parse_statuses(raw: Optional[str]) -> List[OrderStatus]:
    """'PENDING,PREPARING' -> [OrderStatus.PENDING, OrderStatus.PREPARING]"""
    out: List[OrderStatus] = []
    for part in (raw or "").split(","):
        s = part.strip().upper()
        if not s:
            continue
        try:
            out.append(OrderStatus(s))
        except ValueError:
            raise InvalidRequestError(f"Unknown order status: {s}") from None
    return out


@router.get("")
def get_orders(session: SessionDep, user: CurrentUser, status: Optional[str] = Query(None), limit: int = Query(200, ge=1, le=1000)):
    orders = list_orders(session, parse_statuses(status), limit=limit)
    return {"orders": [order_payload(session, o) for o in orders]}


@router.get("/{order_id}")
def get_order(order_id: int, session: SessionDep, user: CurrentUser):
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return {"order": order_payload(session, order)}


@router.post("", status_code=201)
async def post_order(body: OrderCreate, session: SessionDep, config: ConfigDep, user: CurrentUser):
    order = create_order(session, body, config)
    session.commit()
    await notify_order("order_created", order)
    return {"order": order_payload(session, order)}


@router.patch("/{order_id}")
async def patch_order_items(order_id: int, body: OrderItemsAdd, session: SessionDep, config: ConfigDep, user: CurrentUser):
    order = add_items(session, order_id, body.items, config)
    session.commit()
    await notify_order("order_updated", order)
    return {"order": order_payload(session, order)}


@router.patch("/{order_id}/status")
async def patch_order_status(order_id: int, body: OrderStatusUpdate, session: SessionDep, config: ConfigDep, user: CurrentUser):
    result = change_status(session, order_id, body.status, config, user_id=user.id)
    session.commit()
    if result.order.status != result.previous:
        await notify_order("order_updated", result.order)

    payload = {"order": order_payload(session, result.order)}
    if result.deduction is not None:
        payload["inventory"] = result.deduction.to_dict()
    return JSONResponse(payload)
