# tesorito/reports.py
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

from sqlmodel import Session, func, select

from .inventory.deduction import round_qty
from .inventory.models_inventory import Ingredient
from .models import Customer, MenuItem, Order, OrderItem, utcnow
from .ordering import COMPLETED_STATUSES

TOP_N = 5


def sales_report(session: Session, days: int = 7) -> Dict[str, Any]:
    since = utcnow() - timedelta(days=days)

    # 1) ordini completati nella finestra
    orders = session.exec(
        select(Order)
        .where(Order.status.in_(list(COMPLETED_STATUSES)), Order.created_at >= since)
        .order_by(Order.created_at.asc())
    ).all()

    total_sales = sum(int(o.total_cents or 0) for o in orders)
    total_orders = len(orders)
    average_ticket = int(round(total_sales / total_orders)) if total_orders else 0

    sales_by_day: Dict[str, int] = {}
    sales_by_source: Dict[str, Dict[str, int]] = {}
    for o in orders:
        day = o.created_at.date().isoformat()
        sales_by_day[day] = sales_by_day.get(day, 0) + int(o.total_cents or 0)
        src = sales_by_source.setdefault(o.source or "Unknown", {"count": 0, "total_cents": 0})
        src["count"] += 1
        src["total_cents"] += int(o.total_cents or 0)

    # 2) piatti più venduti (ricavo dal prezzo catturato sulla riga)
    top_items = []
    order_ids = [int(o.id) for o in orders]
    if order_ids:
        rows = session.exec(
            select(
                MenuItem.id,
                MenuItem.name,
                func.sum(OrderItem.quantity).label("quantity"),
                func.sum(OrderItem.quantity * OrderItem.unit_price_cents).label("revenue_cents"),
            )
            .select_from(OrderItem)
            .join(MenuItem, MenuItem.id == OrderItem.menu_item_id)
            .where(OrderItem.order_id.in_(order_ids))
            .group_by(MenuItem.id, MenuItem.name)
            .order_by(func.sum(OrderItem.quantity).desc(), MenuItem.name.asc())
            .limit(TOP_N)
        ).all()
        top_items = [
            {"menu_item_id": mid, "name": name, "quantity": int(q or 0), "revenue_cents": int(r or 0)}
            for mid, name, q, r in rows
        ]

    # 3) magazzino
    ingredients = session.exec(select(Ingredient).order_by(Ingredient.current_stock.asc())).all()
    low = [i for i in ingredients if i.current_stock <= i.minimum_stock]
    stock_value = sum(float(i.current_stock) * int(i.cost_per_unit_cents or 0) for i in ingredients)

    # 4) clienti
    top_customers = session.exec(
        select(Customer).order_by(Customer.total_spend_cents.desc(), Customer.id.asc()).limit(TOP_N)
    ).all()
    new_customers = session.exec(
        select(func.count()).select_from(Customer).where(Customer.created_at >= since)
    ).one()

    return {
        "days": days,
        "summary": {
            "total_sales_cents": total_sales,
            "total_orders": total_orders,
            "average_ticket_cents": average_ticket,
        },
        "sales_by_day": sales_by_day,
        "sales_by_source": sales_by_source,
        "top_selling_items": top_items,
        "inventory": {
            "low_stock_count": len(low),
            "total_stock_value_cents": int(round(stock_value)),
            "low_stock_items": [
                {"id": i.id, "name": i.name, "stock": round_qty(i.current_stock), "minimum": i.minimum_stock}
                for i in low
            ],
        },
        "customers": {
            "top_customers": [c.model_dump(mode="json") for c in top_customers],
            "new_customers_count": int(new_customers or 0),
        },
    }
