import pytest
from sqlmodel import Session

from tesorito.errors import ConflictError, NotFoundError
from tesorito.inventory.batches import (
    DEFAULT_BATCH_NAME,
    active_batch,
    finish_batch,
    list_batches,
    start_batch,
)
from tesorito.inventory.models_inventory import SmartBatch
from tesorito.models import MenuItem, OrderStatus
from tesorito.models_users import UserRole
from tesorito.ordering import change_status, create_order
from tesorito.schemas import OrderCreate, OrderItemIn


def _order(session, config, lines):
    order = create_order(
        session,
        OrderCreate(items=[OrderItemIn(menu_item_id=mid, quantity=q) for mid, q in lines]),
        config,
    )
    session.commit()
    return order


def test_start_uses_default_name(session, menu):
    batch = start_batch(session, menu["ingredient"].id)
    session.commit()

    assert batch.name == DEFAULT_BATCH_NAME
    assert batch.is_active is True
    assert batch.ended_at is None
    assert active_batch(session, menu["ingredient"].id).id == batch.id


def test_reopen_closes_previous_batch(session, engine, menu):
    ing_id = menu["ingredient"].id
    first = start_batch(session, ing_id, "Trompo 1")
    session.commit()

    second = start_batch(session, ing_id, "Trompo 2")
    session.commit()

    with Session(engine) as s:
        old = s.get(SmartBatch, first.id)
        assert old.is_active is False
        assert old.ended_at is not None
        assert old.ended_at <= s.get(SmartBatch, second.id).started_at

    assert active_batch(session, ing_id).id == second.id
    assert [b.name for b in list_batches(session, ing_id)] == ["Trompo 2", "Trompo 1"]


def test_start_unknown_ingredient(session):
    with pytest.raises(NotFoundError):
        start_batch(session, 404)


def test_finish_counts_qualifying_orders_only(session, config, menu):
    agua = MenuItem(name="Agua", price_cents=1000)
    session.add(agua)
    session.commit()

    before = _order(session, config, [(menu["a"].id, 7)])  # prima dell'apertura
    batch = start_batch(session, menu["ingredient"].id)
    session.commit()

    _order(session, config, [(menu["a"].id, 4), (agua.id, 2)])
    cancelled = _order(session, config, [(menu["a"].id, 3)])
    change_status(session, cancelled.id, OrderStatus.CANCELLED, config)
    session.commit()

    batch, summary, total = finish_batch(session, batch.id)
    session.commit()

    assert before.id is not None
    assert summary == {"Taco": 4}
    assert total == 4
    assert batch.final_yield == {"Taco": 4}
    assert batch.total_items == 4
    assert batch.is_active is False
    assert batch.ended_at >= batch.started_at


def test_finish_closed_batch(session, menu):
    batch = start_batch(session, menu["ingredient"].id)
    finish_batch(session, batch.id)
    session.commit()

    with pytest.raises(ConflictError):
        finish_batch(session, batch.id)


def test_finish_unknown_batch(session):
    with pytest.raises(NotFoundError):
        finish_batch(session, 12345)


# --- HTTP -------------------------------------------------------------------

def test_smart_batch_routes(client, hdr, menu):
    ing_id = menu["ingredient"].id

    r = client.get("/api/inventory/smart-batch", params={"ingredient_id": ing_id}, headers=hdr(UserRole.WAITER))
    assert r.status_code == 200
    assert r.json() == {"active_batch": None}

    r = client.post("/api/inventory/smart-batch", json={"ingredient_id": ing_id, "name": "Trompo"}, headers=hdr(UserRole.CHEF))
    assert r.status_code == 201, r.text
    batch_id = r.json()["batch"]["id"]

    r = client.post(
        "/api/orders",
        json={"items": [{"menu_item_id": menu["b"].id, "quantity": 2}]},
        headers=hdr(UserRole.WAITER),
    )
    assert r.status_code == 201

    r = client.get("/api/inventory/smart-batch", params={"ingredient_id": ing_id}, headers=hdr())
    assert r.json()["active_batch"]["id"] == batch_id
    assert r.json()["active_batch"]["ingredient"]["name"] == "Carne"

    r = client.post(f"/api/inventory/smart-batch/{batch_id}/finish", headers=hdr(UserRole.CHEF))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["summary"] == {"Gringa": 2}
    assert body["total_items"] == 2
    assert body["batch"]["final_yield"] == {"Gringa": 2}

    r = client.post(f"/api/inventory/smart-batch/{batch_id}/finish", headers=hdr(UserRole.CHEF))
    assert r.status_code == 400
    assert r.json()["error"] == "Batch is already closed"

    r = client.get("/api/inventory/smart-batch/history", params={"ingredient_id": ing_id}, headers=hdr())
    assert [b["id"] for b in r.json()["batches"]] == [batch_id]


def test_smart_batch_start_forbidden_for_waiter(client, hdr, menu):
    r = client.post("/api/inventory/smart-batch", json={"ingredient_id": menu["ingredient"].id}, headers=hdr(UserRole.WAITER))
    assert r.status_code == 403


def test_smart_batch_history_without_ingredient(client, hdr, menu):
    r = client.post("/api/inventory/smart-batch", json={"ingredient_id": menu["ingredient"].id}, headers=hdr())
    batch_id = r.json()["batch"]["id"]

    r = client.get("/api/inventory/smart-batch/history", headers=hdr(UserRole.WAITER))

    assert r.status_code == 200, r.text
    assert [b["id"] for b in r.json()["batches"]] == [batch_id]
