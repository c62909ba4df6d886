# tesorito/views_kds.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlmodel import Session, select

from .auth import CurrentUser
from .config import AppConfig, get_config
from .db import get_session_dep
from .errors import ConflictError, NotFoundError
from .models import MenuItem, Order, OrderItem
from .ordering import ACTIVE_STATUSES, change_status, next_status
from .paths import TEMPLATES_DIR
from .ws import notify_order

# Dipendenze tipizzate
SessionDep = Annotated[Session, Depends(get_session_dep)]
ConfigDep = Annotated[AppConfig, Depends(get_config)]

router = APIRouter(tags=["kitchen"])
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# --- util -------------------------------------------------------------------

def _age_seconds(dt: Optional[datetime], now: Optional[datetime] = None) -> int:
    if not dt:
        return 0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0, int((now - dt).total_seconds()))


def _age_human(sec: int) -> str:
    m, s = divmod(sec, 60)
    h, m = divmod(m, 60)
    if h:
        return f"{h}h {m}m"
    if m:
        return f"{m}m {s}s"
    return f"{s}s"


def _key_qs(request: Request) -> str:
    # i link della pagina devono portarsi dietro ?api_key=
    key = request.query_params.get("api_key")
    return "?" + urlencode({"api_key": key}) if key else ""


def kitchen_columns(session: Session, overdue_minutes: int) -> Dict[str, List[dict]]:
    """Ordini attivi raggruppati per stato, i più vecchi prima."""
    orders = session.exec(
        select(Order)
        .where(Order.status.in_(list(ACTIVE_STATUSES)))
        .order_by(Order.created_at.asc(), Order.id.asc())
    ).all()

    order_ids = [int(o.id) for o in orders]
    lines_by_order: Dict[int, List[dict]] = {}
    if order_ids:
        rows = session.exec(
            select(OrderItem, MenuItem)
            .where(OrderItem.order_id.in_(order_ids))
            .join(MenuItem, MenuItem.id == OrderItem.menu_item_id)
            .order_by(OrderItem.id)
        ).all()
        for oi, mi in rows:
            lines_by_order.setdefault(int(oi.order_id), []).append(
                {"name": mi.name, "qty": int(oi.quantity), "notes": oi.notes}
            )

    now = datetime.now(timezone.utc)
    columns: Dict[str, List[dict]] = {st.value: [] for st in ACTIVE_STATUSES}
    for o in orders:
        sec = _age_seconds(o.created_at, now)
        nxt = next_status(o.status)
        columns[o.status.value].append({
            "id": o.id,
            "number": o.order_number,
            "table": o.table_number,
            "source": o.source,
            "notes": o.notes,
            "items": lines_by_order.get(int(o.id), []),
            "age": _age_human(sec),
            "overdue": sec >= overdue_minutes * 60,
            "next": nxt.value if nxt else None,
        })
    return columns


# --- pagine -----------------------------------------------------------------

@router.get("/kitchen", response_class=HTMLResponse)
def kitchen_page(request: Request, user: CurrentUser, config: ConfigDep):
    """Pagina host (carica il fragment via fetch + poke websocket)."""
    qs = _key_qs(request)
    return templates.TemplateResponse(
        request,
        "kds.html",
        {
            "user": user,
            "poll_ms": int(config.kitchen.poll_seconds * 1000),
            "fragment_url": f"/kitchen/fragment{qs}",
            "key_qs": qs,
        },
    )


@router.get("/kitchen/fragment", response_class=HTMLResponse)
def kitchen_fragment(request: Request, session: SessionDep, user: CurrentUser, config: ConfigDep):
    """Solo le colonne: usato dal polling e dagli eventi WS."""
    columns = kitchen_columns(session, config.kitchen.overdue_minutes)
    resp = templates.TemplateResponse(
        request,
        "kds_fragment.html",
        {"columns": columns, "key_qs": _key_qs(request)},
    )
    resp.headers["Cache-Control"] = "no-store, max-age=0"
    return resp


# --- azioni -----------------------------------------------------------------

def _state_response(request: Request, payload: dict):
    # fetch JS -> JSON, form classico -> redirect alla pagina
    if request.headers.get("X-Fetch") == "1":
        return JSONResponse(payload)
    return RedirectResponse(url=f"/kitchen{_key_qs(request)}", status_code=303)


@router.post("/kitchen/orders/{order_id}/advance")
async def kitchen_advance(order_id: int, request: Request, session: SessionDep, user: CurrentUser, config: ConfigDep):
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    target = next_status(order.status)
    if target is None:
        raise ConflictError(f"Order #{order.order_number} cannot advance from {order.status.value}")

    result = change_status(session, order_id, target, config, user_id=user.id)
    session.commit()
    await notify_order("order_updated", result.order)

    return _state_response(request, {"ok": True, "order_id": result.order.id, "status": result.order.status.value})
