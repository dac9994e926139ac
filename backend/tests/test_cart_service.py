"""
Cart / session manager tests.

Pure in-memory behavior: no database, stock comes from the product
snapshot passed in or from a stub lookup.
"""

import pytest

from poscore.services.cart_service import (
    Cart,
    CartLine,
    CartRegistry,
    CartSession,
    EMPTY_CART,
    EXCEEDS_STOCK,
    NO_CHANGE,
    NOT_IN_CART,
    OUT_OF_STOCK,
)
from poscore.services.errors import CartError


def _product(pid=1, name="Widget", price_cents=1000, stock=5):
    return {"id": pid, "name": name, "price_cents": price_cents, "current_stock": stock}


class TestAddLine:
    def test_out_of_stock_is_a_reported_noop(self):
        session = CartSession()
        change = session.add_line(_product(stock=0))
        assert not change.applied
        assert change.reason == OUT_OF_STOCK
        assert session.active.is_empty

    def test_adding_same_product_increments(self):
        session = CartSession()
        session.add_line(_product())
        session.add_line(_product())
        assert len(session.active.lines) == 1
        assert session.active.lines[0].quantity == 2

    def test_increment_refused_beyond_stock(self):
        session = CartSession()
        session.add_line(_product(stock=2))
        session.add_line(_product(stock=2))
        change = session.add_line(_product(stock=2))
        assert not change.applied
        assert change.reason == EXCEEDS_STOCK
        assert session.active.lines[0].quantity == 2

    def test_line_is_snapshot_of_product(self):
        session = CartSession()
        product = _product(name="Soap", price_cents=4550)
        session.add_line(product)
        product["price_cents"] = 9999
        line = session.active.lines[0]
        assert line.name == "Soap"
        assert line.unit_price_cents == 4550

    def test_lines_keep_insertion_order(self):
        session = CartSession()
        session.add_line(_product(pid=2, name="B"))
        session.add_line(_product(pid=1, name="A"))
        assert [line.product_id for line in session.active.lines] == [2, 1]


class TestSetQuantity:
    def test_decrement_to_zero_removes_line(self):
        session = CartSession()
        session.add_line(_product())
        change = session.set_quantity(1, -1)
        assert change.applied
        assert session.active.is_empty

    def test_large_negative_delta_removes_line(self):
        session = CartSession()
        session.add_line(_product())
        session.set_quantity(1, -10)
        assert session.active.find(1) is None

    def test_above_stock_rejected_and_line_unchanged(self):
        session = CartSession()
        session.add_line(_product(stock=3))
        change = session.set_quantity(1, 5)
        assert not change.applied
        assert change.reason == EXCEEDS_STOCK
        assert session.active.lines[0].quantity == 1

    def test_increment_within_stock(self):
        session = CartSession()
        session.add_line(_product(stock=3))
        assert session.set_quantity(1, 2).applied
        assert session.active.lines[0].quantity == 3

    def test_zero_delta_is_no_change(self):
        session = CartSession()
        session.add_line(_product())
        change = session.set_quantity(1, 0)
        assert not change.applied
        assert change.reason == NO_CHANGE
        assert session.active.lines[0].quantity == 1

    def test_unknown_line_raises(self):
        session = CartSession()
        with pytest.raises(CartError):
            session.set_quantity(42, 1)

    def test_uses_live_stock_when_lookup_given(self):
        live = {1: 5}
        session = CartSession(stock_lookup=live.get)
        session.add_line(_product(stock=5))
        live[1] = 1
        change = session.set_quantity(1, 1)
        assert not change.applied
        assert change.reason == EXCEEDS_STOCK

    def test_product_gone_means_no_stock(self):
        session = CartSession(stock_lookup=lambda pid: None)
        session.add_line(_product(stock=5))
        assert not session.set_quantity(1, 1).applied


class TestRemoveAndClear:
    def test_remove_line(self):
        session = CartSession()
        session.add_line(_product())
        assert session.remove_line(1).applied
        assert session.active.is_empty

    def test_remove_missing_line_reports(self):
        session = CartSession()
        change = session.remove_line(1)
        assert not change.applied
        assert change.reason == NOT_IN_CART

    def test_clear(self):
        session = CartSession()
        session.add_line(_product())
        session.clear()
        assert session.active.is_empty


class TestHoldResume:
    def test_hold_empty_cart_is_noop(self):
        session = CartSession()
        change = session.hold()
        assert not change.applied
        assert change.reason == EMPTY_CART
        assert session.held == []

    def test_hold_then_resume_round_trip(self):
        session = CartSession()
        session.add_line(_product(pid=1))
        session.add_line(_product(pid=2, name="Gadget", price_cents=250))
        session.set_quantity(2, 1)
        before = session.active.copy()

        assert session.hold().applied
        assert session.active.is_empty

        restored = session.resume(0)
        assert restored == before
        assert session.active == before
        assert session.held == []

    def test_held_cart_is_stored_by_value(self):
        session = CartSession()
        session.add_line(_product())
        session.hold()
        session.add_line(_product())
        session.set_quantity(1, 2)
        assert session.held[0].lines[0].quantity == 1

    def test_resume_compacts_indices(self):
        session = CartSession()
        for pid in (1, 2, 3):
            session.add_line(_product(pid=pid, name=f"P{pid}"))
            session.hold()

        session.resume(1)
        assert [c.lines[0].product_id for c in session.held] == [1, 3]
        assert session.active.lines[0].product_id == 2

    def test_resume_bad_index_raises(self):
        session = CartSession()
        with pytest.raises(CartError):
            session.resume(0)

    def test_resume_never_merges_into_active_cart(self):
        session = CartSession()
        session.add_line(_product(pid=1))
        session.hold()
        session.add_line(_product(pid=2))
        with pytest.raises(CartError):
            session.resume(0)
        assert len(session.held) == 1
        assert [line.product_id for line in session.active.lines] == [2]


class TestCartTotals:
    def test_subtotal_and_taxed_total(self):
        cart = Cart(lines=[
            CartLine(product_id=1, name="A", unit_price_cents=1000, quantity=2),
            CartLine(product_id=2, name="B", unit_price_cents=250, quantity=4),
        ])
        payload = cart.to_dict()
        assert payload["subtotal_cents"] == 3000
        assert payload["total_cents"] == 3360
        assert payload["item_count"] == 6

    def test_checkout_copy_is_independent(self):
        session = CartSession()
        session.add_line(_product())
        copy = session.checkout_copy()
        session.clear()
        assert copy.lines[0].product_id == 1


class TestCartRegistry:
    def test_one_session_per_operator(self):
        registry = CartRegistry()
        assert registry.get(1) is registry.get(1)
        assert registry.get(1) is not registry.get(2)

    def test_end_drops_session(self):
        registry = CartRegistry()
        registry.get(1).add_line(_product())
        registry.end(1)
        assert registry.get(1).active.is_empty
