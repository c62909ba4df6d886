# tesorito/models.py
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    # naive UTC: le colonne sono DateTime senza fuso
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Datetime con offset -> naive UTC, per confrontarlo con le colonne."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    OTHER = "OTHER"


class MenuItem(SQLModel, table=True):
    __tablename__ = "menu_item"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    price_cents: int = 0
    category: Optional[str] = Field(default=None, index=True)
    image_url: Optional[str] = None
    is_available: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)


class Customer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    phone: Optional[str] = None
    email: Optional[str] = Field(default=None, index=True)
    birthday: Optional[date] = None
    loyalty_points: int = 0
    total_spend_cents: int = 0
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)


class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_number: str = Field(index=True, unique=True)
    status: OrderStatus = Field(default=OrderStatus.PENDING, index=True)
    source: str = "Walk-in"
    table_number: Optional[str] = None
    notes: Optional[str] = None
    customer_id: Optional[int] = Field(default=None, foreign_key="customer.id", index=True)
    subtotal_cents: int = 0
    tax_cents: int = 0
    total_cents: int = Field(default=0, nullable=False)
    inventory_deducted: bool = False
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    # ⚠️ NESSUNA relationship: solo FK e query per order_id


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_item"
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    menu_item_id: int = Field(foreign_key="menu_item.id", index=True)
    quantity: int = 1
    unit_price_cents: int = 0  # prezzo catturato alla creazione
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)


class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    method: PaymentMethod = PaymentMethod.CASH
    amount_cents: int
    received_cents: Optional[int] = None
    change_cents: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, nullable=False)
