# tesorito/inventory/models_inventory.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, UniqueConstraint
from sqlmodel import SQLModel, Field

from ..models import utcnow


class Ingredient(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    unit: str = "unit"            # "kg" | "lt" | "gr" | "ml" | "unit" ...
    current_stock: float = 0.0
    minimum_stock: float = 0.0
    cost_per_unit_cents: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)


class RecipeItem(SQLModel, table=True):
    __tablename__ = "recipe_item"
    __table_args__ = (UniqueConstraint("menu_item_id", "ingredient_id"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    menu_item_id: int = Field(foreign_key="menu_item.id", index=True)
    ingredient_id: int = Field(foreign_key="ingredient.id", index=True)
    quantity_required: float  # per unità venduta, sempre > 0


class StockAdjustment(SQLModel, table=True):
    """Log append-only: una riga per ogni variazione di stock."""
    __tablename__ = "stock_adjustment"
    id: Optional[int] = Field(default=None, primary_key=True)
    ingredient_id: int = Field(foreign_key="ingredient.id", index=True)
    adjustment: float
    reason: Optional[str] = None
    user_id: Optional[int] = Field(default=None, foreign_key="app_user.id")
    order_id: Optional[int] = Field(default=None, foreign_key="order.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False, index=True)


class SmartBatch(SQLModel, table=True):
    __tablename__ = "smart_batch"
    id: Optional[int] = Field(default=None, primary_key=True)
    ingredient_id: int = Field(foreign_key="ingredient.id", index=True)
    name: str = "Standard batch"
    started_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)
    ended_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    is_active: bool = Field(default=True, index=True)
    final_yield: Optional[dict[str, int]] = Field(default=None, sa_type=JSON)
    total_items: int = 0
