# tesorito/routes_payments.py
from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from .auth import CurrentUser
from .config import AppConfig, get_config
from .db import get_session_dep
from .models import Payment
from .ordering import order_payload, record_payment
from .schemas import PaymentCreate
from .ws import notify_order

router = APIRouter(prefix="/api/payments", tags=["payments"])

SessionDep = Annotated[Session, Depends(get_session_dep)]
ConfigDep = Annotated[AppConfig, Depends(get_config)]


@router.post("", status_code=201)
async def payments_create(body: PaymentCreate, session: SessionDep, config: ConfigDep, user: CurrentUser):
    payment, change = record_payment(session, body, config, user_id=user.id)
    session.commit()
    await notify_order("order_updated", change.order)

    out = {"payment": payment.model_dump(mode="json"), "order": order_payload(session, change.order)}
    if change.deduction is not None:
        out["inventory"] = change.deduction.to_dict()
    return out


@router.get("")
def payments_list(session: SessionDep, user: CurrentUser, order_id: Optional[int] = Query(None)):
    stmt = select(Payment)
    if order_id is not None:
        stmt = stmt.where(Payment.order_id == order_id)
    rows = session.exec(stmt.order_by(Payment.created_at.desc(), Payment.id.desc())).all()
    return {"payments": [p.model_dump(mode="json") for p in rows]}
