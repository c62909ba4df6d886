from tesorito.models_users import UserRole


def _order(client, hdr, menu_item_id, quantity=1, **extra):
    r = client.post(
        "/api/orders",
        json={"items": [{"menu_item_id": menu_item_id, "quantity": quantity}], **extra},
        headers=hdr(UserRole.WAITER),
    )
    assert r.status_code == 201, r.text
    return r.json()["order"]


def test_cash_payment_closes_order(client, hdr, menu):
    order = _order(client, hdr, menu["a"].id, 2)

    r = client.post(
        "/api/payments",
        json={"order_id": order["id"], "method": "CASH", "amount_cents": 3000, "received_cents": 5000},
        headers=hdr(UserRole.WAITER),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["payment"]["change_cents"] == 2000
    assert body["order"]["status"] == "PAID"
    assert body["order"]["completed_at"] is not None
    assert body["inventory"]["deductions"][0]["new_stock"] == 0.8

    r = client.get("/api/payments", params={"order_id": order["id"]}, headers=hdr())
    assert [p["amount_cents"] for p in r.json()["payments"]] == [3000]


def test_payment_rules(client, hdr, menu):
    order = _order(client, hdr, menu["a"].id)

    r = client.post(
        "/api/payments",
        json={"order_id": order["id"], "method": "CASH", "amount_cents": 1500, "received_cents": 1000},
        headers=hdr(),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Received amount is lower than the amount due"

    r = client.post("/api/payments", json={"order_id": order["id"], "method": "CARD", "amount_cents": 0}, headers=hdr())
    assert r.status_code == 400

    r = client.post("/api/payments", json={"order_id": 999, "method": "CARD", "amount_cents": 100}, headers=hdr())
    assert r.status_code == 404

    r = client.post("/api/payments", json={"order_id": order["id"], "method": "CARD", "amount_cents": 1500}, headers=hdr())
    assert r.status_code == 201
    assert r.json()["payment"]["change_cents"] is None

    r = client.post("/api/payments", json={"order_id": order["id"], "method": "CARD", "amount_cents": 1500}, headers=hdr())
    assert r.status_code == 400
    assert r.json()["error"] == "Order already paid"


def test_cancelled_order_cannot_be_paid(client, hdr, menu):
    order = _order(client, hdr, menu["a"].id)
    client.patch(f"/api/orders/{order['id']}/status", json={"status": "CANCELLED"}, headers=hdr())

    r = client.post("/api/payments", json={"order_id": order["id"], "method": "CASH", "amount_cents": 1500}, headers=hdr())
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot pay a cancelled order"


def test_sales_report(client, hdr, menu, customer):
    paid = _order(client, hdr, menu["a"].id, 2, source="TikTok", customer_id=customer.id)
    client.post("/api/payments", json={"order_id": paid["id"], "method": "CARD", "amount_cents": 3000}, headers=hdr())

    delivered = _order(client, hdr, menu["b"].id, 1, source="Instagram")
    client.patch(f"/api/orders/{delivered['id']}/status", json={"status": "DELIVERED"}, headers=hdr())

    _order(client, hdr, menu["b"].id, 1)  # ancora PENDING: fuori dal report

    r = client.get("/api/reports", params={"days": 7}, headers=hdr(UserRole.MANAGER))
    assert r.status_code == 200, r.text
    report = r.json()

    assert report["summary"] == {"total_sales_cents": 5000, "total_orders": 2, "average_ticket_cents": 2500}
    assert sum(report["sales_by_day"].values()) == 5000
    assert report["sales_by_source"] == {
        "TikTok": {"count": 1, "total_cents": 3000},
        "Instagram": {"count": 1, "total_cents": 2000},
    }
    assert report["top_selling_items"][0] == {
        "menu_item_id": menu["a"].id, "name": "Taco", "quantity": 2, "revenue_cents": 3000,
    }
    # 1.0 - 0.2 - 0.2 = 0.6 kg a 200.00/kg
    assert report["inventory"]["total_stock_value_cents"] == 12000
    assert report["inventory"]["low_stock_count"] == 0
    assert report["customers"]["top_customers"][0]["id"] == customer.id
    assert report["customers"]["new_customers_count"] == 1


def test_report_requires_manager(client, hdr):
    assert client.get("/api/reports", headers=hdr(UserRole.WAITER)).status_code == 403
    assert client.get("/api/reports", headers=hdr(UserRole.ADMIN)).status_code == 200
