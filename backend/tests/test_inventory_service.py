"""Catalogue edits: payload validation and the stock-edit rule."""

import pytest

from conftest import make_product
from poscore.extensions import db
from poscore.models import Product
from poscore.services import inventory_service
from poscore.services.errors import AuthorizationError, ValidationError


class TestCreateProduct:
    def test_decimal_price_and_opening_stock(self, owner):
        product = inventory_service.create_product(
            {"name": "Hammer", "price": "249.50", "current_stock": 4, "barcode": " "},
            owner,
        )
        assert product.price_cents == 24950
        assert product.current_stock == 4
        assert product.barcode is None

    @pytest.mark.parametrize("price", ["Infinity", "-Infinity", "NaN", "sNaN", "1e30", "12.345", "abc"])
    def test_bad_decimal_price_rejected(self, owner, price):
        with pytest.raises(ValidationError):
            inventory_service.create_product({"name": "X", "price": price}, owner)
        assert db.session.query(Product).count() == 0

    def test_price_and_price_cents_together(self, owner):
        with pytest.raises(ValidationError):
            inventory_service.create_product({"name": "X", "price": "1.00", "price_cents": 100}, owner)

    def test_owner_only(self, cashier):
        with pytest.raises(AuthorizationError):
            inventory_service.create_product({"name": "X", "price_cents": 100}, cashier)


class TestUpdateProduct:
    def test_stock_is_not_editable(self, owner):
        p = make_product(current_stock=10)
        with pytest.raises(ValidationError):
            inventory_service.update_product(p.id, {"current_stock": 0}, owner)
        assert db.session.get(Product, p.id).current_stock == 10

    @pytest.mark.parametrize("price", ["Infinity", "sNaN", "1e30"])
    def test_bad_price_on_update(self, owner, price):
        p = make_product(price_cents=1000)
        with pytest.raises(ValidationError):
            inventory_service.update_product(p.id, {"price": price}, owner)
        assert db.session.get(Product, p.id).price_cents == 1000
