# tesorito/routes_customers.py
from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, update
from sqlmodel import Session, func, select

from .auth import CurrentUser
from .db import get_session_dep
from .errors import NotFoundError
from .models import Customer, Order, utcnow
from .schemas import CustomerIn

router = APIRouter(prefix="/api/customers", tags=["customers"])

SessionDep = Annotated[Session, Depends(get_session_dep)]


def _get_customer(session: Session, customer_id: int) -> Customer:
    c = session.get(Customer, customer_id)
    if not c:
        raise NotFoundError("Customer not found")
    return c


@router.get("")
def customers_list(session: SessionDep, user: CurrentUser, q: Optional[str] = Query(None)):
    stmt = select(Customer)
    term = (q or "").strip().lower()
    if term:
        like = f"%{term}%"
        stmt = stmt.where(or_(
            func.lower(Customer.name).like(like),
            func.lower(Customer.email).like(like),
            Customer.phone.like(like),
        ))
    rows = session.exec(stmt.order_by(func.lower(Customer.name))).all()
    return {"customers": [c.model_dump(mode="json") for c in rows]}


@router.post("", status_code=201)
def customers_create(body: CustomerIn, session: SessionDep, user: CurrentUser):
    c = Customer(**body.model_dump())
    c.name = c.name.strip()
    session.add(c)
    session.commit()
    session.refresh(c)
    return {"customer": c.model_dump(mode="json")}


@router.get("/{customer_id}")
def customers_get(customer_id: int, session: SessionDep, user: CurrentUser):
    c = _get_customer(session, customer_id)
    orders = session.exec(
        select(Order).where(Order.customer_id == customer_id).order_by(Order.created_at.desc()).limit(20)
    ).all()
    data = c.model_dump(mode="json")
    data["recent_orders"] = [o.model_dump(mode="json") for o in orders]
    return {"customer": data}


@router.put("/{customer_id}")
def customers_update(customer_id: int, body: CustomerIn, session: SessionDep, user: CurrentUser):
    c = _get_customer(session, customer_id)
    for k, v in body.model_dump().items():
        setattr(c, k, v)
    c.name = c.name.strip()
    c.updated_at = utcnow()
    session.add(c)
    session.commit()
    return {"customer": c.model_dump(mode="json")}


@router.delete("/{customer_id}")
def customers_delete(customer_id: int, session: SessionDep, user: CurrentUser):
    c = _get_customer(session, customer_id)
    # gli ordini restano, senza cliente
    session.exec(update(Order).where(Order.customer_id == customer_id).values(customer_id=None))
    session.delete(c)
    session.commit()
    return {"success": True}
