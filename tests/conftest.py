"""Pytest configuration and fixtures."""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from tesorito.config import AppConfig, get_config
from tesorito.db import get_session_dep
from tesorito.inventory.models_inventory import Ingredient, RecipeItem
from tesorito.main import app
from tesorito.models import Customer, MenuItem
from tesorito.models_users import User, UserRole

API_KEYS = {
    UserRole.ADMIN: "admin-key",
    UserRole.MANAGER: "manager-key",
    UserRole.WAITER: "waiter-key",
    UserRole.CHEF: "chef-key",
}


def _fk_on(dbapi_connection, connection_record):
    cur = dbapi_connection.cursor()
    cur.execute("PRAGMA foreign_keys=ON;")
    cur.close()


@pytest.fixture()
def engine():
    """In-memory SQLite condiviso tra sessioni (StaticPool)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _fk_on)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session(engine) -> Generator[Session, None, None]:
    with Session(engine, expire_on_commit=False) as s:
        yield s


@pytest.fixture()
def config() -> AppConfig:
    return AppConfig()


@pytest.fixture()
def users(engine) -> dict:
    out = {}
    with Session(engine, expire_on_commit=False) as s:
        for role, key in API_KEYS.items():
            u = User(email=f"{role.value.lower()}@test.local", name=role.value.title(), role=role, api_key=key)
            s.add(u)
            out[role] = u
        s.commit()
    return out


@pytest.fixture()
def client(engine, config, users) -> Generator[TestClient, None, None]:
    """TestClient senza startup: niente DB su file, solo l'engine di test."""

    def override_session():
        with Session(engine, expire_on_commit=False) as s:
            yield s

    app.dependency_overrides[get_session_dep] = override_session
    app.dependency_overrides[get_config] = lambda: config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture()
def hdr():
    """hdr(UserRole.CHEF) -> {"X-API-Key": ...}"""

    def _headers(role: UserRole = UserRole.ADMIN) -> dict:
        return {"X-API-Key": API_KEYS[role]}

    return _headers


@pytest.fixture()
def menu(engine) -> dict:
    """Ingrediente X (1.0 kg), piatto A (0.1 kg di X) e piatto B (0.2 kg di X)."""
    with Session(engine, expire_on_commit=False) as s:
        x = Ingredient(name="Carne", unit="kg", current_stock=1.0, minimum_stock=0.5, cost_per_unit_cents=20000)
        a = MenuItem(name="Taco", price_cents=1500, category="Tacos")
        b = MenuItem(name="Gringa", price_cents=2000, category="Especiales")
        s.add_all([x, a, b])
        s.flush()
        s.add_all([
            RecipeItem(menu_item_id=a.id, ingredient_id=x.id, quantity_required=0.1),
            RecipeItem(menu_item_id=b.id, ingredient_id=x.id, quantity_required=0.2),
        ])
        s.commit()
    return {"ingredient": x, "a": a, "b": b}


@pytest.fixture()
def customer(engine) -> Customer:
    with Session(engine, expire_on_commit=False) as s:
        c = Customer(name="Lupita", phone="+52 555 123 4567", email="lupita@example.com")
        s.add(c)
        s.commit()
    return c
