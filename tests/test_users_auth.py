from sqlmodel import Session, select

from tesorito.inventory.models_inventory import StockAdjustment
from tesorito.models_users import UserRole


def test_health_is_public(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.text == "OK"


def test_api_key_header_or_query(client, menu):
    assert client.get("/api/menu").status_code == 401
    assert client.get("/api/menu", headers={"X-API-Key": "waiter-key"}).status_code == 200
    assert client.get("/api/menu", params={"api_key": "chef-key"}).status_code == 200

    r = client.get("/api/menu", headers={"X-API-Key": "bogus"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid API key"}


def test_forbidden_payload_lists_roles(client, hdr):
    r = client.get("/api/users", headers=hdr(UserRole.MANAGER))
    assert r.status_code == 403
    assert r.json()["error"] == "Role MANAGER not allowed"
    assert r.json()["details"] == ["Requires one of: ADMIN"]


def test_create_user_returns_key_once(client, hdr):
    r = client.post("/api/users", json={"email": " Cocina@Tesorito.MX ", "name": "Cocina", "role": "CHEF"}, headers=hdr())
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["user"]["email"] == "cocina@tesorito.mx"
    assert "api_key" not in body["user"]
    key = body["api_key"]
    assert len(key) == 32

    r = client.get("/api/users", headers=hdr())
    assert all("api_key" not in u for u in r.json()["users"])
    assert "cocina@tesorito.mx" in [u["email"] for u in r.json()["users"]]

    # la nuova chiave funziona e ha il ruolo giusto
    assert client.patch("/api/inventory/adjust", json={"ingredient_id": 999, "adjustment": 1}, headers={"X-API-Key": key}).status_code == 404

    r = client.post("/api/users", json={"email": "cocina@tesorito.mx", "name": "Dup", "role": "CHEF"}, headers=hdr())
    assert r.status_code == 400

    r = client.post("/api/users", json={"email": "nope", "name": "X", "role": "CHEF"}, headers=hdr())
    assert r.status_code == 400

    r = client.post("/api/users", json={"email": "x@y.mx", "name": "X", "role": "OWNER"}, headers=hdr())
    assert r.status_code == 400


def test_delete_user_keeps_stock_history(client, hdr, engine, users, menu):
    chef = users[UserRole.CHEF]
    client.patch("/api/inventory/adjust", json={"ingredient_id": menu["ingredient"].id, "adjustment": 1}, headers=hdr(UserRole.CHEF))

    r = client.delete(f"/api/users/{chef.id}", headers=hdr())
    assert r.status_code == 200, r.text

    with Session(engine) as s:
        [adj] = s.exec(select(StockAdjustment)).all()
        assert adj.user_id is None
    assert client.get("/api/menu", headers=hdr(UserRole.CHEF)).status_code == 401


def test_cannot_delete_self_or_missing(client, hdr, users):
    admin = users[UserRole.ADMIN]
    r = client.delete(f"/api/users/{admin.id}", headers=hdr())
    assert r.status_code == 400
    assert client.delete("/api/users/999", headers=hdr()).status_code == 404


def test_unknown_route_uses_error_body(client):
    r = client.get("/api/nothing-here")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}
