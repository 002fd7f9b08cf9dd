def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "database": "ok", "cache": "ok"}


def test_tenant_header_is_required(client):
    r = client.get("/tabs/")
    assert r.status_code == 400


def test_malformed_tenant_header_is_forbidden(client):
    r = client.get("/tabs/", headers={"X-Tenant-ID": "public"})
    assert r.status_code == 403
    assert r.json()["code"] == "INVALID_TENANT_SCHEMA"


def test_unknown_tenant_is_not_found(client):
    r = client.get("/tabs/", headers={"X-Tenant-ID": "tenant_nobody"})
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


def test_tab_lifecycle_over_http(client, tenant_headers):
    r = client.post("/tabs/", json={"table_number": "12"}, headers=tenant_headers)
    assert r.status_code == 201
    tab_id = r.json()["id"]

    r = client.post("/tabs/", json={"table_number": "12"}, headers=tenant_headers)
    assert r.status_code == 200
    assert r.json()["id"] == tab_id

    r = client.post(
        f"/tabs/{tab_id}/orders",
        json={"items": [{"product_name": "Tasting menu", "unit_price": "100.00", "quantity": 1}]},
        headers=tenant_headers,
    )
    assert r.status_code == 201
    order_id = r.json()["id"]

    r = client.patch(f"/tabs/orders/{order_id}/delivered", headers=tenant_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"

    r = client.get("/tabs/", headers=tenant_headers)
    assert [t["total"] for t in r.json()] == [100.0]

    close = {"payment_method": "card", "discount_rate": 10, "tip_rate": 5, "tax_rate": 8, "amount_paid": 110}
    r = client.post(f"/tabs/{tab_id}/close", json=close, headers=tenant_headers)
    assert r.status_code == 200
    sale = r.json()
    assert sale["total"] == 103.0
    assert sale["change_amount"] == 7.0

    r = client.post(f"/tabs/{tab_id}/close", json=close, headers=tenant_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "INVALID_STATE"

    r = client.get("/sales/", headers=tenant_headers)
    assert [s["tab_id"] for s in r.json()] == [tab_id]
    assert client.get("/tabs/", headers=tenant_headers).json() == []


def test_invalid_order_is_a_bad_request(client, tenant_headers):
    tab_id = client.post("/tabs/", json={"table_number": "3"}, headers=tenant_headers).json()["id"]
    r = client.post(f"/tabs/{tab_id}/orders", json={"items": []}, headers=tenant_headers)
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_suspended_tenant_is_rejected(client, tenant_headers):
    tenant_id = client.post("/admin/tenants", json={"name": "Globex", "slug": "globex"}).json()["id"]
    r = client.patch(f"/admin/tenants/{tenant_id}/active", json={"active": False})
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    namespace = r.json()["namespace"]
    r = client.get("/products/", headers={"X-Tenant-ID": namespace})
    assert r.status_code == 403
    assert r.json()["code"] == "TENANT_INACTIVE"


def test_products_and_expenses(client, tenant_headers):
    r = client.post("/products/", json={"name": "Burger", "price": "32.50", "category": "Mains"}, headers=tenant_headers)
    assert r.status_code == 201
    assert r.json()["category"] == "Mains"
    assert [p["name"] for p in client.get("/products/", headers=tenant_headers).json()] == ["Burger"]

    expense = {
        "category": "Rent",
        "description": "Monthly rent",
        "amount": "2500.00",
        "date": "2024-03-01T00:00:00",
        "payment_method": "transfer",
        "is_recurring": True,
        "recurring_day_of_month": 5,
    }
    r = client.post("/expenses/", json=expense, headers=tenant_headers)
    assert r.status_code == 201

    r = client.post("/admin/jobs/recurring-expenses/run", params={"as_of": "2024-03-05"})
    assert r.status_code == 200
    assert r.json()["created"] == 1

    r = client.get("/expenses/", params={"is_recurring": "false"}, headers=tenant_headers)
    assert [e["recurring_template_id"] for e in r.json()] == [1]


def test_delete_tenant(client, tenant_headers):
    tenant_id = client.post("/admin/tenants", json={"name": "Initech", "slug": "initech"}).json()["id"]
    r = client.delete(f"/admin/tenants/{tenant_id}")
    assert r.status_code == 204
    assert client.delete(f"/admin/tenants/{tenant_id}").status_code == 404
