# tesorito/inventory/deduction.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from ..config import CONFIG, STOCK_POLICIES
from ..errors import ConflictError, InsufficientStockError, InvalidRequestError, NotFoundError
from ..models import Order, OrderItem, to_naive_utc, utcnow
from .models_inventory import Ingredient, RecipeItem, StockAdjustment

log = logging.getLogger("tesorito.inventory")


def round_qty(value: float, precision: Optional[int] = None) -> float:
    """Arrotonda le quantità di stock: 2 x 0.1 + 3 x 0.2 deve dare 0.8, non 0.8000000000000002."""
    if precision is None:
        precision = CONFIG.inventory.stock_precision
    return round(float(value), precision)


@dataclass
class Requirement:
    ingredient: Ingredient
    total_required: float = 0.0


@dataclass
class Deduction:
    ingredient_id: int
    ingredient_name: str
    quantity_deducted: float
    previous_stock: float
    new_stock: float


@dataclass
class DeductionResult:
    order_id: int
    policy: str
    deductions: List[Deduction] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "policy": self.policy,
            "deductions": [asdict(d) for d in self.deductions],
            "warnings": list(self.warnings),
        }


def compute_requirements(session: Session, order: Order) -> Dict[int, Requirement]:
    """ingredient_id -> quantità totale richiesta dall'ordine (somma su tutte le righe)."""
    lines = session.exec(select(OrderItem).where(OrderItem.order_id == order.id)).all()
    if not lines:
        return {}

    menu_ids = list({int(ln.menu_item_id) for ln in lines})
    recipe_rows = session.exec(
        select(RecipeItem, Ingredient)
        .where(RecipeItem.menu_item_id.in_(menu_ids))
        .join(Ingredient, Ingredient.id == RecipeItem.ingredient_id)
    ).all()

    recipes_by_menu: Dict[int, List[tuple[RecipeItem, Ingredient]]] = {}
    for ri, ing in recipe_rows:
        recipes_by_menu.setdefault(int(ri.menu_item_id), []).append((ri, ing))

    out: Dict[int, Requirement] = {}
    for ln in lines:
        qty = int(ln.quantity or 0)
        for ri, ing in recipes_by_menu.get(int(ln.menu_item_id), []):
            req = out.setdefault(int(ing.id), Requirement(ingredient=ing))
            req.total_required += qty * float(ri.quantity_required)

    for req in out.values():
        req.total_required = round_qty(req.total_required)
    return out


def deduct_inventory_for_order(
    session: Session,
    order_id: int,
    policy: Optional[str] = None,
    user_id: Optional[int] = None,
) -> DeductionResult:
    """
    Scala dal magazzino gli ingredienti consumati da un ordine.

    - strict: calcola tutto prima; se anche un solo ingrediente andrebbe sotto zero
      non scrive nulla e solleva InsufficientStockError con l'elenco dei problemi.
    - permissive: applica sempre, lo stock può diventare negativo (warning nel log).

    Non fa commit: il chiamante decide (una sola transazione per richiesta).
    """
    policy = (policy or CONFIG.inventory.stock_policy).lower()
    if policy not in STOCK_POLICIES:
        raise InvalidRequestError(f"Unknown stock policy: {policy}")

    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.inventory_deducted:
        raise ConflictError(f"Inventory already deducted for order #{order.order_number}")

    requirements = compute_requirements(session, order)
    result = DeductionResult(order_id=int(order.id), policy=policy)

    if policy == "strict":
        problems = []
        for req in requirements.values():
            ing = req.ingredient
            if round_qty(ing.current_stock - req.total_required) < 0:
                problems.append(
                    f"Insufficient stock for {ing.name}. "
                    f"Required: {req.total_required:g}, Available: {ing.current_stock:g}"
                )
        if problems:
            log.info("Deduction rejected for order #%s: %s", order.order_number, "; ".join(problems))
            raise InsufficientStockError("Insufficient inventory for order", details=problems)

    now = utcnow()
    for ingredient_id, req in requirements.items():
        ing = req.ingredient
        previous = float(ing.current_stock)
        new_stock = round_qty(previous - req.total_required)

        ing.current_stock = new_stock
        ing.updated_at = now
        session.add(ing)
        session.add(StockAdjustment(
            ingredient_id=ingredient_id,
            adjustment=-req.total_required,
            reason=f"Order #{order.order_number}",
            user_id=user_id,
            order_id=order.id,
            created_at=now,
        ))

        if new_stock < 0:
            msg = f"{ing.name} is now negative ({new_stock:g} {ing.unit})"
            result.warnings.append(msg)
            log.warning("Order #%s: %s", order.order_number, msg)

        result.deductions.append(Deduction(
            ingredient_id=ingredient_id,
            ingredient_name=ing.name,
            quantity_deducted=req.total_required,
            previous_stock=previous,
            new_stock=new_stock,
        ))

    order.inventory_deducted = True
    order.updated_at = now
    session.add(order)
    session.flush()

    log.info("Deducted %d ingredients for order #%s (%s)", len(result.deductions), order.order_number, policy)
    return result


def adjust_stock(
    session: Session,
    ingredient_id: int,
    adjustment: float,
    reason: Optional[str] = None,
    user_id: Optional[int] = None,
) -> tuple[Ingredient, float]:
    """Variazione manuale (acquisti, correzioni, scarti). Ritorna (ingrediente, stock precedente)."""
    ing = session.get(Ingredient, ingredient_id)
    if not ing:
        raise NotFoundError("Ingredient not found")

    previous = float(ing.current_stock)
    delta = round_qty(adjustment)
    ing.current_stock = round_qty(previous + delta)
    ing.updated_at = utcnow()
    session.add(ing)
    session.add(StockAdjustment(
        ingredient_id=ing.id,
        adjustment=delta,
        reason=(reason or "").strip() or None,
        user_id=user_id,
    ))
    session.flush()

    log.info("Stock adjusted for %s: %+g (%g -> %g)", ing.name, delta, previous, ing.current_stock)
    return ing, previous


def low_stock_ingredients(session: Session) -> List[Ingredient]:
    return list(session.exec(
        select(Ingredient)
        .where(Ingredient.current_stock <= Ingredient.minimum_stock)
        .order_by(Ingredient.current_stock.asc(), Ingredient.name.asc())
    ).all())


def usage_history(
    session: Session,
    ingredient_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[StockAdjustment]:
    if not session.get(Ingredient, ingredient_id):
        raise NotFoundError("Ingredient not found")

    start, end = to_naive_utc(start), to_naive_utc(end)
    stmt = select(StockAdjustment).where(StockAdjustment.ingredient_id == ingredient_id)
    if start is not None:
        stmt = stmt.where(StockAdjustment.created_at >= start)
    if end is not None:
        stmt = stmt.where(StockAdjustment.created_at <= end)
    return list(session.exec(
        stmt.order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
    ).all())
