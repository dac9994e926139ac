"""
Notification fanout tests.

Verifies:
- Explicit role addressing: a role only ever sees notifications addressed to it
- is_read moves false -> true only, and repeating mark_read is harmless
- Live subscribers get the full role-filtered list on every change until they cancel
"""

import pytest

from conftest import make_product
from poscore.extensions import db
from poscore.models import Notification
from poscore.services import inventory_service, notification_service
from poscore.services.errors import (
    AuthorizationError,
    NotificationNotFound,
    ProductNotFound,
    ValidationError,
)


class TestNotify:
    def test_addressed_roles_are_normalized(self, app):
        n = notification_service.notify("system", "Hello", "World", ["Owner", "checker", "owner"])
        assert n.target_roles == ["checker", "owner"]
        assert n.is_read is False

    @pytest.mark.parametrize("roles", [[], None, ["manager"]])
    def test_bad_target_roles(self, app, roles):
        with pytest.raises(ValidationError):
            notification_service.notify("system", "t", "m", roles)

    def test_unknown_kind(self, app):
        with pytest.raises(ValidationError):
            notification_service.notify("gossip", "t", "m", ["owner"])

    def test_role_filtering(self, app):
        notification_service.notify("system", "For owner", "m", ["owner"])
        notification_service.notify("system", "For staff", "m", ["cashier", "checker"])

        assert [n.title for n in notification_service.list_notifications("owner")] == ["For owner"]
        assert [n.title for n in notification_service.list_notifications("cashier")] == ["For staff"]
        assert [n.title for n in notification_service.list_notifications("checker")] == ["For staff"]

    def test_newest_first_and_limit(self, app):
        for i in range(5):
            notification_service.notify("system", f"n{i}", "m", ["owner"])

        titles = [n.title for n in notification_service.list_notifications("owner", limit=3)]
        assert titles == ["n4", "n3", "n2"]


class TestMarkRead:
    def test_mark_read_is_one_way_and_idempotent(self, app):
        n = notification_service.notify("system", "t", "m", ["owner"])
        assert notification_service.unread_count("owner") == 1

        first = notification_service.mark_read(n.id, "owner")
        read_at = first.read_at
        second = notification_service.mark_read(n.id, "owner")

        assert second.is_read is True
        assert second.read_at == read_at
        assert notification_service.unread_count("owner") == 0
        assert notification_service.list_notifications("owner", unread_only=True) == []

    def test_not_addressed_role_sees_not_found(self, app):
        n = notification_service.notify("system", "t", "m", ["owner"])
        with pytest.raises(NotificationNotFound):
            notification_service.mark_read(n.id, "cashier")
        assert db.session.get(Notification, n.id).is_read is False

    def test_missing_notification(self, app):
        with pytest.raises(NotificationNotFound):
            notification_service.mark_read(999, "owner")


class TestSubscribe:
    def test_live_delivery_until_cancel(self, app):
        owner_feed, cashier_feed = [], []
        sub = notification_service.subscribe("owner", owner_feed.append)
        notification_service.subscribe("cashier", cashier_feed.append)

        n = notification_service.notify("system", "first", "m", ["owner"])
        notification_service.mark_read(n.id, "owner")
        sub.cancel()
        notification_service.notify("system", "second", "m", ["owner"])

        assert [[(item["title"], item["is_read"]) for item in push] for push in owner_feed] == [
            [],
            [("first", False)],
            [("first", True)],
        ]
        assert cashier_feed == [[]]

    def test_every_push_is_the_full_list(self, app):
        notification_service.notify("system", "older", "m", ["checker"])
        pushes = []
        with notification_service.subscribe("checker", pushes.append):
            notification_service.notify("system", "newer", "m", ["checker", "owner"])
            notification_service.notify("system", "not mine", "m", ["owner"])

        assert [[item["title"] for item in push] for push in pushes] == [
            ["older"],
            ["newer", "older"],
        ]

    def test_unknown_role_rejected(self, app):
        with pytest.raises(ValidationError):
            notification_service.subscribe("manager", lambda n: None)


class TestLowStockAlert:
    def test_checker_flags_products_to_owner(self, checker):
        a = make_product("Soap", current_stock=2, min_stock=5)
        b = make_product("Rice", current_stock=1, min_stock=5)

        n = notification_service.send_low_stock_alert([a.id, b.id, a.id], checker)

        assert n.kind == "low-stock"
        assert n.target_roles == ["owner"]
        assert n.message == "The following items are running low: Rice, Soap"

    def test_only_checker_may_send(self, cashier):
        p = make_product()
        with pytest.raises(AuthorizationError):
            notification_service.send_low_stock_alert([p.id], cashier)

    def test_requires_products(self, checker):
        with pytest.raises(ValidationError):
            notification_service.send_low_stock_alert([], checker)

    def test_unknown_product(self, checker):
        p = make_product()
        with pytest.raises(ProductNotFound) as exc:
            notification_service.send_low_stock_alert([p.id, 404], checker)
        assert exc.value.details["product_ids"] == [404]


class TestPriceChange:
    def test_price_update_notifies_cashiers_and_owner(self, owner):
        p = make_product("Coffee", price_cents=1250)

        inventory_service.update_product(p.id, {"price": "13.75"}, owner)

        cashier_items = notification_service.list_notifications("cashier")
        assert [n.title for n in cashier_items] == ["Price Updated"]
        assert cashier_items[0].message == "Coffee price changed from ₱12.50 to ₱13.75 by Olive Owner"
        assert [n.title for n in notification_service.list_notifications("owner")] == ["Price Updated"]

    def test_same_price_is_silent(self, owner):
        p = make_product("Coffee", price_cents=1250)
        inventory_service.update_product(p.id, {"price_cents": 1250, "name": "Dark Coffee"}, owner)
        assert notification_service.list_notifications("cashier") == []
