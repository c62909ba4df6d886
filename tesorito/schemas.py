# tesorito/schemas.py
"""Corpi delle richieste JSON (validazione con pydantic)."""
from __future__ import annotations

import re
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .models import OrderStatus, PaymentMethod
from .models_users import UserRole

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", re.IGNORECASE)
PHONE_RE = re.compile(r"^[0-9+\-()\s]{7,20}$")


def _blank_to_none(v):
    # i form inviano "" per i campi vuoti
    if isinstance(v, str) and not v.strip():
        return None
    return v


# --- ordini -----------------------------------------------------------------

class OrderItemIn(BaseModel):
    menu_item_id: int
    quantity: int = Field(1, gt=0)
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    customer_id: Optional[int] = None
    source: str = "Walk-in"
    table_number: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemIn] = Field(default_factory=list)


class OrderItemsAdd(BaseModel):
    items: List[OrderItemIn] = Field(default_factory=list)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentCreate(BaseModel):
    order_id: int
    method: PaymentMethod
    amount_cents: int = Field(gt=0)
    received_cents: Optional[int] = Field(default=None, ge=0)


# --- menu / ricette -----------------------------------------------------------

class MenuItemIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price_cents: int = Field(ge=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool = True

    @field_validator("description", "category", "image_url", mode="before")
    @classmethod
    def blanks_to_none(cls, v):
        return _blank_to_none(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class RecipeItemIn(BaseModel):
    menu_item_id: int
    ingredient_id: int
    quantity_required: float = Field(gt=0)


class RecipeItemUpdate(BaseModel):
    quantity_required: float = Field(gt=0)


# --- inventario -------------------------------------------------------------

class IngredientIn(BaseModel):
    name: str = Field(min_length=1)
    unit: str = Field("unit", min_length=1)
    current_stock: float = 0.0
    minimum_stock: float = Field(0.0, ge=0)
    cost_per_unit_cents: Optional[int] = Field(default=None, ge=0)


class IngredientUpdate(BaseModel):
    name: str = Field(min_length=1)
    unit: str = Field(min_length=1)
    minimum_stock: float = Field(0.0, ge=0)
    cost_per_unit_cents: Optional[int] = Field(default=None, ge=0)


class StockAdjustIn(BaseModel):
    ingredient_id: int
    adjustment: float
    reason: Optional[str] = None


class DeductIn(BaseModel):
    order_id: int


class SmartBatchStart(BaseModel):
    ingredient_id: int
    name: Optional[str] = None


# --- clienti / utenti --------------------------------------------------------

class CustomerIn(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    birthday: Optional[date] = None

    @field_validator("phone", "email", "birthday", mode="before")
    @classmethod
    def blanks_to_none(cls, v):
        return _blank_to_none(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not PHONE_RE.match(v):
            raise ValueError("Invalid phone format")
        return v


class UserCreate(BaseModel):
    email: str
    name: str = Field(min_length=1)
    role: UserRole

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v
