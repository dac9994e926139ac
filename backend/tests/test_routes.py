"""
API route tests.

Covers:
- Authentication is required everywhere except /health and /version
- Role checks at the route layer (403)
- Error mapping: validation 400, not found 404, insufficient stock 409,
  partial apply 500
- The cashier flow end to end: login, cart, checkout, history
"""

import pytest

from conftest import auth_headers, get_auth_token, make_product
from poscore.extensions import db
from poscore.models import Product, StockMovement
from poscore.services import movement_service
from poscore.services.errors import StoreUnavailable


PROTECTED_ENDPOINTS = [
    ("GET", "/api/auth/me"),
    ("GET", "/api/products"),
    ("POST", "/api/products"),
    ("GET", "/api/cart"),
    ("POST", "/api/cart/checkout"),
    ("GET", "/api/sales"),
    ("POST", "/api/movements"),
    ("GET", "/api/notifications"),
    ("GET", "/api/reports/summary"),
]


@pytest.mark.parametrize("method,path", PROTECTED_ENDPOINTS)
def test_requires_authentication(client, method, path):
    response = client.open(path, method=method, json={})
    assert response.status_code == 401


def test_invalid_token_rejected(client):
    response = client.get("/api/products", headers=auth_headers("not-a-real-token"))
    assert response.status_code == 401


class TestAuthRoutes:
    def test_login_and_me(self, client, cashier_user):
        response = client.post("/api/auth/login", json={"username": "cashier", "password": "Password123"})
        assert response.status_code == 200
        assert response.json["user"]["role"] == "cashier"
        assert response.json["expires_at"].endswith("Z")

        me = client.get("/api/auth/me", headers=auth_headers(response.json["token"]))
        assert me.json["user"]["username"] == "cashier"

    def test_bad_password(self, client, cashier_user):
        response = client.post("/api/auth/login", json={"username": "cashier", "password": "wrong"})
        assert response.status_code == 401

    def test_missing_credentials(self, client):
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_logout_revokes_token(self, client, cashier_headers):
        assert client.post("/api/auth/logout", headers=cashier_headers).status_code == 200
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401


class TestRoleChecks:
    def test_cashier_cannot_create_product(self, client, cashier_headers):
        response = client.post("/api/products", json={"name": "X", "price_cents": 100}, headers=cashier_headers)
        assert response.status_code == 403
        assert response.json["required_roles"] == ["owner"]

    def test_checker_cannot_use_cart(self, client, checker_headers):
        assert client.get("/api/cart", headers=checker_headers).status_code == 403

    def test_cashier_cannot_record_movement(self, client, cashier_headers, product):
        response = client.post(
            "/api/movements",
            json={"product_id": product.id, "kind": "in", "quantity": 1},
            headers=cashier_headers,
        )
        assert response.status_code == 403

    def test_only_owner_reads_reports(self, client, cashier_headers, checker_headers):
        for headers in (cashier_headers, checker_headers):
            response = client.get("/api/reports/rollups", headers=headers)
            assert response.status_code == 403


class TestProductRoutes:
    def test_create_with_decimal_price(self, client, owner_headers):
        response = client.post(
            "/api/products",
            json={"name": "Coffee", "price": "12.50", "barcode": "4800001", "current_stock": 3},
            headers=owner_headers,
        )
        assert response.status_code == 201
        assert response.json["product"]["price_cents"] == 1250
        assert response.json["product"]["current_stock"] == 3

    @pytest.mark.parametrize("price", ["Infinity", "1e30", "sNaN"])
    def test_non_finite_price_is_a_bad_request(self, client, owner_headers, price):
        response = client.post("/api/products", json={"name": "X", "price": price}, headers=owner_headers)
        assert response.status_code == 400
        assert response.json["code"] == "validation_error"

    def test_duplicate_barcode(self, client, owner_headers):
        make_product(barcode="4800001")
        response = client.post(
            "/api/products",
            json={"name": "Other", "price_cents": 100, "barcode": "4800001"},
            headers=owner_headers,
        )
        assert response.status_code == 400

    def test_update_rejects_stock_edit(self, client, owner_headers, product):
        response = client.patch(
            f"/api/products/{product.id}",
            json={"current_stock": 99},
            headers=owner_headers,
        )
        assert response.status_code == 400
        assert db.session.get(Product, product.id).current_stock == 10

    def test_get_missing_product(self, client, cashier_headers):
        response = client.get("/api/products/999", headers=cashier_headers)
        assert response.status_code == 404
        assert response.json["code"] == "product_not_found"

    def test_low_and_out_of_stock_lists(self, client, cashier_headers):
        make_product("Low", current_stock=2, min_stock=5)
        make_product("Empty", current_stock=0, min_stock=5)
        make_product("Plenty", current_stock=50, min_stock=5)

        low = client.get("/api/products/low-stock", headers=cashier_headers)
        out = client.get("/api/products/out-of-stock", headers=cashier_headers)

        assert [p["name"] for p in low.json["items"]] == ["Low"]
        assert [p["name"] for p in out.json["items"]] == ["Empty"]

    def test_deactivated_product_hidden(self, client, owner_headers, cashier_headers, product):
        assert client.delete(f"/api/products/{product.id}", headers=owner_headers).status_code == 200
        assert client.get(f"/api/products/{product.id}", headers=cashier_headers).status_code == 404


class TestCashierFlow:
    def test_barcode_to_checkout(self, client, owner_headers, cashier_headers):
        created = client.post(
            "/api/products",
            json={"name": "Coffee", "price": "12.50", "barcode": "4800001", "current_stock": 5, "min_stock": 3},
            headers=owner_headers,
        )
        product_id = created.json["product"]["id"]

        added = client.post("/api/cart/lines", json={"barcode": "4800001"}, headers=cashier_headers)
        assert added.json["applied"] is True
        bumped = client.patch(f"/api/cart/lines/{product_id}", json={"delta": 1}, headers=cashier_headers)
        assert bumped.json["cart"]["active"]["subtotal_cents"] == 2500

        response = client.post("/api/cart/checkout", json={"payment_method": "card"}, headers=cashier_headers)

        assert response.status_code == 201
        sale = response.json["sale"]
        assert sale["subtotal_cents"] == 2500
        assert sale["total_cents"] == 2800
        assert sale["payment_method"] == "card"
        assert response.json["cart"]["active"]["lines"] == []
        assert db.session.get(Product, product_id).current_stock == 3

        history = client.get("/api/sales", headers=cashier_headers)
        assert [s["id"] for s in history.json["items"]] == [sale["id"]]

        owner_feed = client.get("/api/notifications", headers=owner_headers)
        titles = {n["title"] for n in owner_feed.json["items"]}
        assert {"New Transaction Completed", "Low Stock Alert"} <= titles

    def test_out_of_stock_add_is_reported(self, client, cashier_headers):
        p = make_product(current_stock=0)
        response = client.post("/api/cart/lines", json={"product_id": p.id}, headers=cashier_headers)
        assert response.status_code == 200
        assert response.json["applied"] is False
        assert response.json["reason"] == "out_of_stock"

    def test_checkout_conflict_keeps_cart(self, client, cashier_headers, checker):
        p = make_product(current_stock=1)
        client.post("/api/cart/lines", json={"product_id": p.id}, headers=cashier_headers)
        movement_service.apply_movement(p.id, "out", 1, checker)

        response = client.post("/api/cart/checkout", headers=cashier_headers)

        assert response.status_code == 409
        assert response.json["code"] == "insufficient_stock"
        assert response.json["details"]["items"][0]["on_hand"] == 0
        cart = client.get("/api/cart", headers=cashier_headers).json["cart"]
        assert len(cart["active"]["lines"]) == 1

    def test_empty_checkout(self, client, cashier_headers):
        assert client.post("/api/cart/checkout", headers=cashier_headers).status_code == 400

    def test_hold_and_resume(self, client, cashier_headers, product):
        client.post("/api/cart/lines", json={"product_id": product.id}, headers=cashier_headers)
        held = client.post("/api/cart/hold", headers=cashier_headers)
        assert held.json["cart"]["active"]["lines"] == []
        assert len(held.json["cart"]["held"]) == 1

        resumed = client.post("/api/cart/held/0/resume", headers=cashier_headers)
        assert resumed.status_code == 200
        assert resumed.json["cart"]["held"] == []
        assert resumed.json["cart"]["active"]["lines"][0]["product_id"] == product.id

        missing = client.post("/api/cart/held/3/resume", headers=cashier_headers)
        assert missing.status_code == 400

    def test_resume_needs_an_empty_active_cart(self, client, cashier_headers, product):
        client.post("/api/cart/lines", json={"product_id": product.id}, headers=cashier_headers)
        client.post("/api/cart/hold", headers=cashier_headers)
        client.post("/api/cart/lines", json={"product_id": product.id}, headers=cashier_headers)

        refused = client.post("/api/cart/held/0/resume", headers=cashier_headers)
        assert refused.status_code == 400
        assert refused.json["code"] == "cart_error"

        cart = client.get("/api/cart", headers=cashier_headers).json["cart"]
        assert len(cart["held"]) == 1
        assert len(cart["active"]["lines"]) == 1

        client.post("/api/cart/clear", headers=cashier_headers)
        assert client.post("/api/cart/held/0/resume", headers=cashier_headers).status_code == 200

    def test_cashier_cannot_see_other_cashiers_sale(self, client, second_cashier, cashier_headers):
        from poscore.services import sales_service
        from poscore.services.cart_service import Cart, CartLine

        p = make_product(current_stock=5)
        sale = sales_service.commit_sale(
            Cart(lines=[CartLine(product_id=p.id, name=p.name, unit_price_cents=p.price_cents, quantity=1)]),
            second_cashier,
        )
        response = client.get(f"/api/sales/{sale.id}", headers=cashier_headers)
        assert response.status_code == 404


class TestMovementRoutes:
    def test_create_movement(self, client, checker_headers, product):
        response = client.post(
            "/api/movements",
            json={"product_id": product.id, "kind": "in", "quantity": 5, "reason": "Delivery"},
            headers=checker_headers,
        )
        assert response.status_code == 201
        assert response.json["movement"]["delta"] == 5
        assert response.json["movement"]["stock_applied"] is True
        assert db.session.get(Product, product.id).current_stock == 15

    @pytest.mark.parametrize("body", [
        {"kind": "in", "quantity": 1},
        {"product_id": "x", "kind": "in", "quantity": 1},
        {"product_id": 1, "kind": "in", "quantity": 0},
        {"product_id": 1, "kind": "lost", "quantity": 1},
    ])
    def test_invalid_movement(self, client, checker_headers, product, body):
        response = client.post("/api/movements", json=body, headers=checker_headers)
        assert response.status_code == 400

    def test_unknown_product(self, client, checker_headers):
        response = client.post(
            "/api/movements",
            json={"product_id": 999, "kind": "in", "quantity": 1},
            headers=checker_headers,
        )
        assert response.status_code == 404

    def test_partial_apply_reported_and_repaired(self, client, checker_headers, owner_headers, product, monkeypatch):
        def failing_apply(movement_id):
            raise StoreUnavailable("Store write failed; nothing was applied")

        monkeypatch.setattr(movement_service, "_apply_stock", failing_apply)
        response = client.post(
            "/api/movements",
            json={"product_id": product.id, "kind": "in", "quantity": 2},
            headers=checker_headers,
        )
        monkeypatch.undo()

        assert response.status_code == 500
        assert response.json["partial_apply"] is True
        movement_id = response.json["movement_id"]
        assert db.session.get(StockMovement, movement_id).stock_applied is False

        health = client.get("/health")
        assert health.json["status"] == "degraded"
        assert health.json["checks"]["database"]["details"]["unapplied_movements"] == 1

        repaired = client.post("/api/movements/repair", headers=owner_headers)
        assert repaired.json["repaired"] == 1
        assert db.session.get(Product, product.id).current_stock == 12

    def test_history_for_owner(self, client, owner_headers, checker, product):
        movement_service.apply_movement(product.id, "damaged", 1, checker)
        response = client.get(f"/api/movements?product_id={product.id}", headers=owner_headers)
        assert response.status_code == 200
        assert [m["kind"] for m in response.json["items"]] == ["damaged"]


class TestNotificationRoutes:
    def test_low_stock_alert_and_mark_read(self, client, checker_headers, owner_headers, product):
        sent = client.post(
            "/api/notifications/low-stock-alert",
            json={"product_ids": [product.id]},
            headers=checker_headers,
        )
        assert sent.status_code == 201
        notification_id = sent.json["notification"]["id"]

        assert client.get("/api/notifications/unread-count", headers=owner_headers).json["unread"] == 1
        assert client.get("/api/notifications", headers=checker_headers).json["items"] == []

        read = client.post(f"/api/notifications/{notification_id}/read", headers=owner_headers)
        assert read.status_code == 200
        assert read.json["notification"]["is_read"] is True
        assert client.get("/api/notifications?unread=true", headers=owner_headers).json["items"] == []

    def test_mark_read_not_addressed(self, client, checker_headers, cashier_headers, product):
        sent = client.post(
            "/api/notifications/low-stock-alert",
            json={"product_ids": [product.id]},
            headers=checker_headers,
        )
        notification_id = sent.json["notification"]["id"]
        response = client.post(f"/api/notifications/{notification_id}/read", headers=cashier_headers)
        assert response.status_code == 404

    def test_alert_requires_list(self, client, checker_headers):
        response = client.post(
            "/api/notifications/low-stock-alert",
            json={"product_ids": 5},
            headers=checker_headers,
        )
        assert response.status_code == 400


class TestReportRoutes:
    def test_summary(self, client, owner_headers, cashier):
        from poscore.services import sales_service
        from poscore.services.cart_service import Cart, CartLine
        from poscore.time_utils import utcnow

        p = make_product(price_cents=1000, current_stock=5)
        sales_service.commit_sale(
            Cart(lines=[CartLine(product_id=p.id, name=p.name, unit_price_cents=1000, quantity=2)]),
            cashier,
        )
        today = utcnow().date().isoformat()

        response = client.get(
            f"/api/reports/summary?start_date={today}&end_date={today}",
            headers=owner_headers,
        )
        assert response.status_code == 200
        assert response.json["total_sales_cents"] == 2000
        assert response.json["total_sales_with_tax_cents"] == 2240

        rollups = client.get("/api/reports/rollups", headers=owner_headers)
        assert rollups.json["today"]["total_transactions"] == 1

    def test_bad_range(self, client, owner_headers):
        response = client.get(
            "/api/reports/summary?start_date=2026-03-08&end_date=2026-03-01",
            headers=owner_headers,
        )
        assert response.status_code == 400
        assert response.json["code"] == "report_error"

    def test_export_download(self, client, owner_headers):
        response = client.get(
            "/api/reports/summary/export?start_date=2026-03-01&end_date=2026-03-07&format=csv",
            headers=owner_headers,
        )
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "sales-report_2026-03-01_2026-03-07.csv" in response.headers["Content-Disposition"]
        assert b"Total Transactions,0" in response.data

        bad = client.get(
            "/api/reports/summary/export?start_date=2026-03-01&end_date=2026-03-07&format=pdf",
            headers=owner_headers,
        )
        assert bad.status_code == 400

    def test_unknown_period(self, client, owner_headers):
        assert client.get("/api/reports/rollups/year", headers=owner_headers).status_code == 400


def test_health_and_version(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json["status"] == "healthy"

    version = client.get("/version")
    assert version.json["api_version"] == "1.0.0"


def test_token_helper_matches_login(client, owner_user):
    assert get_auth_token(client, "owner") is not None
    assert get_auth_token(client, "owner", "nope") is None
