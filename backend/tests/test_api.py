# Overview: Pytest coverage for the HTTP API: auth, permissions, sale flow and error mapping.

"""
API Tests

Runs the whole sale flow through the Flask test client: login, preview,
commit (with idempotent replay), receipt, return, cancel and delete.
"""

import io
import json

import pytest


class TestAuth:

    def test_login_and_me(self, client, user_a):
        resp = client.post("/api/auth/login", json={"email": "ANA@acme.com", "password": "Password123!"})
        assert resp.status_code == 200
        token = resp.json["token"]
        assert "ORDERS" in resp.json["permissions"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json["user"]["email"] == "ana@acme.com"
        assert me.json["org_id"] == user_a.org_id

    def test_bad_password(self, client, user_a):
        resp = client.post("/api/auth/login", json={"email": user_a.email, "password": "wrong"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, admin_headers):
        assert client.post("/api/auth/logout", headers=admin_headers).status_code == 200
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401

    @pytest.mark.parametrize("method,path", [
        ("GET", "/api/products"),
        ("POST", "/api/orders"),
        ("GET", "/api/orders"),
        ("POST", "/api/inventory/movements"),
        ("GET", "/api/finance/summary"),
        ("GET", "/api/clients"),
    ])
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "ok"


class TestPermissions:

    def test_cashier_can_sell(self, client, cashier_headers, product_a):
        resp = client.post("/api/orders", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "payment": {"method": "PIX"},
        }, headers=cashier_headers)
        assert resp.status_code == 201

    @pytest.mark.parametrize("method,path", [
        ("POST", "/api/products"),
        ("POST", "/api/inventory/movements"),
        ("GET", "/api/finance/transactions"),
        ("GET", "/api/orders"),
    ])
    def test_cashier_denied(self, client, cashier_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"]


class TestSaleFlow:

    def test_preview(self, client, admin_headers, product_a):
        resp = client.post("/api/orders/preview", json={
            "items": [{"product_id": product_a.id, "quantity": 3}],
            "order_discount_percent": 10,
            "payment": {"method": "DINHEIRO", "amount_received": "50"},
        }, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["quote"]["grand_total"] == "27.00"
        assert resp.json["quote"]["payment"]["change"] == "23.00"

    @pytest.mark.parametrize("extra", [
        {"order_discount_percent": "1e30"},
        {"order_discount_amount": "1e30"},
        {"payment": {"method": "DINHEIRO", "amount_received": "1e30"}},
    ])
    def test_huge_numbers_are_rejected(self, client, admin_headers, product_a, extra):
        payload = {
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "payment": {"method": "PIX"},
        }
        payload.update(extra)

        resp = client.post("/api/orders/preview", json=payload, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION_ERROR"

    def test_commit_replay_receipt_return_cancel_delete(self, client, admin_headers, product_a):
        payload = {
            "items": [{"product_id": product_a.id, "quantity": 2}],
            "payment": {"method": "CARTAO", "card_type": "CREDITO", "installments": 3},
            "idempotency_key": "pos-1-42",
        }
        created = client.post("/api/orders", json=payload, headers=admin_headers)
        assert created.status_code == 201
        order = created.json["order"]
        assert order["payment_method"] == "CARTAO_CREDITO_3X"
        assert order["total_amount_cents"] == 2000

        replay = client.post("/api/orders", json=payload, headers=admin_headers)
        assert replay.status_code == 200
        assert replay.json["replayed"] is True
        assert replay.json["order"]["id"] == order["id"]

        receipt = client.get(f"/api/orders/{order['id']}/receipt", headers=admin_headers)
        assert receipt.status_code == 200
        assert receipt.json["orderId"] == order["code"]
        assert receipt.json["header"] == "Loja Acme"
        assert receipt.json["items"][0] == {"name": "Camiseta", "qty": 2, "price": "10.00", "total": "20.00"}
        assert receipt.json["paymentMethod"] == "CARTAO_CREDITO_3X"

        item_id = order["items"][0]["id"]
        returned = client.post(f"/api/orders/{order['id']}/returns", json={
            "items": [{"order_item_id": item_id, "quantity": 1, "amount": "10"}],
            "reason": "Tamanho errado",
        }, headers=admin_headers)
        assert returned.status_code == 201
        assert returned.json["reconciliation"]["current_total_cents"] == 1000

        over = client.post(f"/api/orders/{order['id']}/returns", json={
            "items": [{"order_item_id": item_id, "quantity": 0, "amount": "10.01"}],
        }, headers=admin_headers)
        assert over.status_code == 409
        assert over.json["code"] == "OVER_REFUND"

        cancelled = client.post(f"/api/orders/{order['id']}/cancel", json={"reason": "teste"}, headers=admin_headers)
        assert cancelled.status_code == 200
        assert cancelled.json["order"]["status"] == "CANCELLED"

        again = client.post(f"/api/orders/{order['id']}/cancel", headers=admin_headers)
        assert again.status_code == 409
        assert again.json["code"] == "INVALID_TRANSITION"

        # Returns keep the order in history
        deleted = client.delete(f"/api/orders/{order['id']}", headers=admin_headers)
        assert deleted.status_code == 409

        detail = client.get(f"/api/orders/{order['id']}", headers=admin_headers)
        assert detail.status_code == 200
        assert detail.json["reconciliation"]["original_total_cents"] == 2000

        stock = client.get(f"/api/products/{product_a.id}", headers=admin_headers)
        assert stock.json["product"]["stock"] == 20

    def test_insufficient_stock_message(self, client, admin_headers, product_a):
        resp = client.post("/api/orders", json={
            "items": [{"product_id": product_a.id, "quantity": 25}],
            "payment": {"method": "PIX"},
        }, headers=admin_headers)

        assert resp.status_code == 409
        assert resp.json["code"] == "INSUFFICIENT_STOCK"
        assert resp.json["details"]["missing_quantity"] == 5

    def test_short_cash(self, client, admin_headers, product_a):
        resp = client.post("/api/orders", json={
            "items": [{"product_id": product_a.id, "quantity": 5}],
            "payment": {"method": "DINHEIRO", "amount_received": "40"},
        }, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "INSUFFICIENT_PAYMENT"
        assert resp.json["details"]["shortfall"] == "10.00"

    def test_missing_payment(self, client, admin_headers, product_a):
        resp = client.post("/api/orders", json={
            "items": [{"product_id": product_a.id}],
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_list_orders(self, client, admin_headers, product_a):
        for _ in range(2):
            client.post("/api/orders", json={
                "items": [{"product_id": product_a.id}],
                "payment": {"method": "PIX"},
            }, headers=admin_headers)

        resp = client.get("/api/orders?status=COMPLETED&limit=1", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 2
        assert len(resp.json["items"]) == 1


class TestCatalogAndInventoryRoutes:

    def test_create_and_update_product(self, client, admin_headers):
        created = client.post("/api/products", json={
            "sku": "BLU-001", "name": "Blusa", "price": "59,90", "stock": 4,
            "recommended_discount_percent": 5,
        }, headers=admin_headers)
        assert created.status_code == 201
        product = created.json["product"]
        assert (product["price_cents"], product["stock"], product["recommended_discount_bps"]) == (5990, 4, 500)

        dup = client.post("/api/products", json={"sku": "BLU-001", "name": "x", "price": 1}, headers=admin_headers)
        assert dup.status_code == 409

        updated = client.put(f"/api/products/{product['id']}", json={"price": "49.90"}, headers=admin_headers)
        assert updated.json["product"]["price_cents"] == 4990

        listed = client.get("/api/products?search=blu", headers=admin_headers)
        assert [p["sku"] for p in listed.json["items"]] == ["BLU-001"]

    def test_movement_and_reconcile(self, client, admin_headers, product_a):
        resp = client.post("/api/inventory/movements", json={
            "product_id": product_a.id, "type": "OUT", "quantity": 3, "note": "Avaria",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["product"]["stock"] == 17
        assert resp.json["audit_recorded"] is True

        negative = client.post("/api/inventory/movements", json={
            "product_id": product_a.id, "type": "OUT", "quantity": 100,
        }, headers=admin_headers)
        assert negative.status_code == 409

        reconcile = client.get("/api/inventory/reconcile", headers=admin_headers)
        assert reconcile.json == {"ok": True, "mismatches": []}

    def test_receipt_multipart(self, client, admin_headers, product_a):
        resp = client.post(
            "/api/inventory/receipts",
            data={
                "lines": json.dumps([{"product_id": product_a.id, "quantity": 6, "unit_cost": "5"}]),
                "supplier_name": "Fornecedor X",
                "file": (io.BytesIO(b"nota"), "nota.pdf", "application/pdf"),
            },
            content_type="multipart/form-data",
            headers=admin_headers,
        )

        assert resp.status_code == 201
        receipt = resp.json["receipt"]
        assert receipt["total_cents"] == 3000
        assert receipt["attachment_path"].endswith(".pdf")

    def test_finance_summary(self, client, admin_headers, product_a):
        client.post("/api/orders", json={
            "items": [{"product_id": product_a.id, "quantity": 2}],
            "payment": {"method": "PIX"},
        }, headers=admin_headers)
        client.post("/api/finance/transactions", json={
            "description": "Aluguel", "amount": "5.00", "type": "EXPENSE",
        }, headers=admin_headers)

        summary = client.get("/api/finance/summary", headers=admin_headers).json
        assert (summary["income_cents"], summary["expense_cents"], summary["balance_cents"]) == (2000, 500, 1500)

    def test_finance_date_filters(self, client, admin_headers):
        created = client.post("/api/finance/transactions", json={
            "description": "Frete", "amount": "12.50", "type": "EXPENSE",
            "occurred_at": "2026-03-10T15:30:00Z",
        }, headers=admin_headers)
        assert created.status_code == 201

        same_day = client.get("/api/finance/transactions?from=2026-03-10&to=2026-03-10", headers=admin_headers)
        assert same_day.json["count"] == 1

        next_day = client.get("/api/finance/transactions?from=2026-03-11", headers=admin_headers)
        assert next_day.json["count"] == 0

        reversed_range = client.get("/api/finance/summary?from=2026-03-11&to=2026-03-10", headers=admin_headers)
        assert reversed_range.status_code == 400

        bad_date = client.post("/api/finance/transactions", json={
            "description": "Frete", "amount": "1.00", "type": "EXPENSE", "occurred_at": "ontem",
        }, headers=admin_headers)
        assert bad_date.status_code == 400

    def test_clients(self, client, admin_headers):
        created = client.post("/api/clients", json={"name": "Loja Parceira", "type": "PJ"}, headers=admin_headers)
        assert created.status_code == 201

        listed = client.get("/api/clients?search=parceira", headers=admin_headers)
        assert listed.json["count"] == 1
