# tesorito/routes_users.py
from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import update
from sqlmodel import Session, select

from .auth import AdminUser
from .db import get_session_dep
from .errors import ConflictError, NotFoundError
from .inventory.models_inventory import StockAdjustment
from .models_users import User
from .schemas import UserCreate

log = logging.getLogger("tesorito.users")

router = APIRouter(prefix="/api/users", tags=["users"])

SessionDep = Annotated[Session, Depends(get_session_dep)]


def _public(u: User) -> dict:
    # la chiave non esce mai dalla lista
    return u.model_dump(mode="json", exclude={"api_key"})


@router.get("")
def users_list(session: SessionDep, admin: AdminUser):
    rows = session.exec(select(User).order_by(User.email)).all()
    return {"users": [_public(u) for u in rows]}


@router.post("", status_code=201)
def users_create(body: UserCreate, session: SessionDep, admin: AdminUser):
    if session.exec(select(User).where(User.email == body.email)).first():
        raise ConflictError(f"User {body.email} already exists")

    u = User(email=body.email, name=body.name.strip(), role=body.role, api_key=secrets.token_hex(16))
    session.add(u)
    session.commit()
    session.refresh(u)
    log.info("User %s created with role %s by %s", u.email, u.role.value, admin.email)
    # unica volta in cui la chiave viene mostrata
    return {"user": _public(u), "api_key": u.api_key}


@router.delete("/{user_id}")
def users_delete(user_id: int, session: SessionDep, admin: AdminUser):
    u = session.get(User, user_id)
    if not u:
        raise NotFoundError("User not found")
    if u.id == admin.id:
        raise ConflictError("You cannot delete your own user")

    # lo storico magazzino resta, anonimo
    session.exec(update(StockAdjustment).where(StockAdjustment.user_id == user_id).values(user_id=None))
    session.delete(u)
    session.commit()
    log.info("User %s deleted by %s", u.email, admin.email)
    return {"success": True}
