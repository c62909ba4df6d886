# tesorito/ordering.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import desc
from sqlmodel import Session, select

from .config import AppConfig, CONFIG
from .errors import ConflictError, InvalidRequestError, NotFoundError
from .inventory.deduction import DeductionResult, deduct_inventory_for_order
from .models import Customer, MenuItem, Order, OrderItem, OrderStatus, Payment, utcnow
from .schemas import OrderCreate, OrderItemIn, PaymentCreate

log = logging.getLogger("tesorito.orders")

# percorso lineare del ticket; CANCELLED è a parte
FLOW: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.DELIVERED,
    OrderStatus.PAID,
)
ACTIVE_STATUSES = (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY)
COMPLETED_STATUSES = (OrderStatus.DELIVERED, OrderStatus.PAID)
TERMINAL_STATUSES = (OrderStatus.PAID, OrderStatus.CANCELLED)


@dataclass
class StatusChange:
    order: Order
    previous: OrderStatus
    deduction: Optional[DeductionResult] = None


def calculate_totals(subtotal_cents: int, tax_rate: float) -> tuple[int, int]:
    """(tax_cents, total_cents) per un subtotale in centesimi."""
    tax = int(round(subtotal_cents * tax_rate))
    return tax, subtotal_cents + tax


def loyalty_points_for(total_cents: int, point_value_cents: int) -> int:
    return max(0, int(total_cents) // int(point_value_cents))


def next_order_number(session: Session, width: int = 3) -> str:
    last = session.exec(select(Order).order_by(desc(Order.id))).first()
    if not last:
        return "1".zfill(width)
    try:
        n = int(last.order_number) + 1
    except ValueError:
        n = int(last.id) + 1
    return str(n).zfill(width)


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    if status not in FLOW:
        return None
    idx = FLOW.index(status)
    return FLOW[idx + 1] if idx + 1 < len(FLOW) else None


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current in TERMINAL_STATUSES:
        return False
    if target == OrderStatus.CANCELLED:
        return current in ACTIVE_STATUSES
    return FLOW.index(target) > FLOW.index(current)


def _load_menu(session: Session, items: Sequence[OrderItemIn]) -> Dict[int, MenuItem]:
    if not items:
        raise InvalidRequestError("Order must contain at least one item")
    ids = list({it.menu_item_id for it in items})
    menu = {int(m.id): m for m in session.exec(select(MenuItem).where(MenuItem.id.in_(ids))).all()}
    for it in items:
        m = menu.get(it.menu_item_id)
        if not m:
            raise NotFoundError(f"Menu item {it.menu_item_id} not found")
        if not m.is_available:
            raise InvalidRequestError(f"Menu item {m.name} is not available")
    return menu


def _add_lines(session: Session, order: Order, items: Iterable[OrderItemIn], menu: Dict[int, MenuItem]) -> int:
    subtotal = 0
    for it in items:
        m = menu[it.menu_item_id]
        unit = int(m.price_cents or 0)
        subtotal += unit * it.quantity
        session.add(OrderItem(
            order_id=order.id,
            menu_item_id=m.id,
            quantity=it.quantity,
            unit_price_cents=unit,
            notes=(it.notes or "").strip() or None,
        ))
    return subtotal


def _credit_customer(session: Session, customer_id: int, old_total: int, new_total: int, point_value: int) -> None:
    """Aggiorna punti e spesa con la differenza (creazione: old_total = 0)."""
    c = session.get(Customer, customer_id)
    if not c:
        return
    c.loyalty_points += loyalty_points_for(new_total, point_value) - loyalty_points_for(old_total, point_value)
    c.total_spend_cents += new_total - old_total
    c.updated_at = utcnow()
    session.add(c)


def create_order(session: Session, data: OrderCreate, config: AppConfig = CONFIG) -> Order:
    menu = _load_menu(session, data.items)

    if data.customer_id is not None and not session.get(Customer, data.customer_id):
        raise NotFoundError("Customer not found")

    order = Order(
        order_number=next_order_number(session, config.orders.order_number_width),
        source=(data.source or "").strip() or "Walk-in",
        table_number=(data.table_number or "").strip() or None,
        notes=(data.notes or "").strip() or None,
        customer_id=data.customer_id,
    )
    session.add(order)
    session.flush()  # ottieni order.id

    subtotal = _add_lines(session, order, data.items, menu)
    tax, total = calculate_totals(subtotal, config.orders.tax_rate)
    order.subtotal_cents = subtotal
    order.tax_cents = tax
    order.total_cents = total
    session.add(order)

    if order.customer_id is not None:
        _credit_customer(session, order.customer_id, 0, total, config.orders.loyalty_point_value_cents)

    session.flush()
    log.info("Created order #%s (%d lines, total %d cents)", order.order_number, len(data.items), total)
    return order


def add_items(session: Session, order_id: int, items: List[OrderItemIn], config: AppConfig = CONFIG) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.status in TERMINAL_STATUSES:
        raise ConflictError(f"Cannot add items to a {order.status.value} order")
    if order.inventory_deducted:
        raise ConflictError("Cannot add items after inventory was deducted")

    menu = _load_menu(session, items)
    extra = _add_lines(session, order, items, menu)

    old_total = int(order.total_cents or 0)
    order.subtotal_cents = int(order.subtotal_cents or 0) + extra
    order.tax_cents, order.total_cents = calculate_totals(order.subtotal_cents, config.orders.tax_rate)
    order.updated_at = utcnow()
    session.add(order)

    if order.customer_id is not None:
        _credit_customer(session, order.customer_id, old_total, order.total_cents, config.orders.loyalty_point_value_cents)

    session.flush()
    log.info("Added %d lines to order #%s", len(items), order.order_number)
    return order


def change_status(
    session: Session,
    order_id: int,
    status: OrderStatus,
    config: AppConfig = CONFIG,
    user_id: Optional[int] = None,
) -> StatusChange:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    previous = order.status
    if status == previous:
        return StatusChange(order=order, previous=previous)
    if not can_transition(previous, status):
        raise ConflictError(f"Cannot change order status from {previous.value} to {status.value}")

    deduction = None
    if status in COMPLETED_STATUSES and config.inventory.deduct_on_complete and not order.inventory_deducted:
        # strict: se manca stock l'eccezione annulla anche il cambio di stato
        deduction = deduct_inventory_for_order(session, order.id, config.inventory.stock_policy, user_id=user_id)

    now = utcnow()
    order.status = status
    order.updated_at = now
    if status in COMPLETED_STATUSES and order.completed_at is None:
        order.completed_at = now
    session.add(order)
    session.flush()

    log.info("Order #%s: %s -> %s", order.order_number, previous.value, status.value)
    return StatusChange(order=order, previous=previous, deduction=deduction)


def record_payment(
    session: Session,
    data: PaymentCreate,
    config: AppConfig = CONFIG,
    user_id: Optional[int] = None,
) -> tuple[Payment, StatusChange]:
    order = session.get(Order, data.order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.status == OrderStatus.CANCELLED:
        raise ConflictError("Cannot pay a cancelled order")
    if order.status == OrderStatus.PAID:
        raise ConflictError("Order already paid")

    change = None
    if data.received_cents is not None:
        if data.received_cents < data.amount_cents:
            raise InvalidRequestError("Received amount is lower than the amount due")
        change = data.received_cents - data.amount_cents

    payment = Payment(
        order_id=order.id,
        method=data.method,
        amount_cents=data.amount_cents,
        received_cents=data.received_cents,
        change_cents=change,
    )
    session.add(payment)
    status_change = change_status(session, order.id, OrderStatus.PAID, config, user_id=user_id)
    session.flush()

    log.info("Payment %s %d cents for order #%s", data.method.value, data.amount_cents, order.order_number)
    return payment, status_change


def list_orders(session: Session, statuses: Optional[Sequence[OrderStatus]] = None, limit: int = 200) -> List[Order]:
    stmt = select(Order)
    if statuses:
        stmt = stmt.where(Order.status.in_(list(statuses)))
    return list(session.exec(stmt.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)).all())


def order_payload(session: Session, order: Order) -> Dict[str, Any]:
    """Ordine + righe (con nome piatto) + cliente, pronto per JSON."""
    rows = session.exec(
        select(OrderItem, MenuItem)
        .where(OrderItem.order_id == order.id)
        .join(MenuItem, MenuItem.id == OrderItem.menu_item_id)
        .order_by(OrderItem.id)
    ).all()
    customer = session.get(Customer, order.customer_id) if order.customer_id else None

    data = order.model_dump(mode="json")
    data["items"] = [
        {
            **oi.model_dump(mode="json"),
            "menu_item_name": mi.name,
            "line_total_cents": int(oi.unit_price_cents) * int(oi.quantity),
        }
        for oi, mi in rows
    ]
    data["customer"] = customer.model_dump(mode="json") if customer else None
    return data
