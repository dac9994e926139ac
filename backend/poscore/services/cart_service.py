# Overview: In-memory cart/session state per cashier; quantity edits bounded by live stock.

"""
Cart / Session Manager

A cart is an ordered list of lines, unique by product. Each line is a
value snapshot of the product at add time (name, unit price) plus a
mutable quantity.

Rules:
- add_line is a no-op when the product is out of stock; adding a product
  already in the cart increments it, refused if it would exceed stock.
- set_quantity applies a delta: a result <= 0 removes the line, a result
  above current stock is rejected and the line is left unchanged.
- hold() moves the active cart (by value) to the end of the held list;
  resume(i) takes held cart i back out (later indices shift down).
- Carts are never merged: resume requires an empty active cart.

Refusals that the UI only has to report come back as CartChange(applied=False,
reason=...); programming errors (unknown line, bad held index) raise CartError.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from typing import Callable

from poscore.money_utils import apply_tax
from .errors import CartError


OUT_OF_STOCK = "out_of_stock"
EXCEEDS_STOCK = "exceeds_stock"
EMPTY_CART = "empty_cart"
NOT_IN_CART = "not_in_cart"
NO_CHANGE = "no_change"


@dataclass
class CartLine:
    product_id: int
    name: str
    unit_price_cents: int
    quantity: int
    # Stock seen when the line was added; fallback when no live lookup exists
    stock_at_add: int = field(default=0, compare=False)

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }


@dataclass
class Cart:
    lines: list[CartLine] = field(default_factory=list)

    def find(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal_cents(self) -> int:
        return sum(line.line_total_cents for line in self.lines)

    def copy(self) -> "Cart":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        subtotal = self.subtotal_cents
        return {
            "lines": [line.to_dict() for line in self.lines],
            "item_count": self.item_count,
            "subtotal_cents": subtotal,
            "total_cents": apply_tax(subtotal),
        }


@dataclass(frozen=True)
class CartChange:
    applied: bool
    reason: str | None = None


def _product_fields(product) -> tuple[int, str, int, int]:
    """Accept a Product model or a product dict (cache snapshot)."""
    if isinstance(product, dict):
        return (
            product["id"],
            product["name"],
            product["price_cents"],
            int(product.get("current_stock") or 0),
        )
    return product.id, product.name, product.price_cents, int(product.current_stock or 0)


class CartSession:
    """One cashier's active cart plus held carts."""

    def __init__(self, operator_id: int | None = None, stock_lookup: Callable[[int], int | None] | None = None):
        self.operator_id = operator_id
        self.active = Cart()
        self.held: list[Cart] = []
        self._stock_lookup = stock_lookup
        self._lock = threading.RLock()

    def _available(self, line: CartLine) -> int:
        if self._stock_lookup is None:
            return line.stock_at_add
        stock = self._stock_lookup(line.product_id)
        return int(stock) if stock is not None else 0

    def add_line(self, product) -> CartChange:
        product_id, name, price_cents, stock = _product_fields(product)
        with self._lock:
            if stock <= 0:
                return CartChange(False, OUT_OF_STOCK)

            existing = self.active.find(product_id)
            if existing is not None:
                if existing.quantity + 1 > stock:
                    return CartChange(False, EXCEEDS_STOCK)
                existing.quantity += 1
                existing.stock_at_add = stock
                return CartChange(True)

            self.active.lines.append(
                CartLine(
                    product_id=product_id,
                    name=name,
                    unit_price_cents=price_cents,
                    quantity=1,
                    stock_at_add=stock,
                )
            )
            return CartChange(True)

    def set_quantity(self, product_id: int, delta: int) -> CartChange:
        with self._lock:
            line = self.active.find(product_id)
            if line is None:
                raise CartError("Product is not in the cart", details={"product_id": product_id})
            if delta == 0:
                return CartChange(False, NO_CHANGE)

            new_quantity = line.quantity + delta
            if new_quantity <= 0:
                self.active.lines.remove(line)
                return CartChange(True)

            if new_quantity > self._available(line):
                return CartChange(False, EXCEEDS_STOCK)

            line.quantity = new_quantity
            return CartChange(True)

    def remove_line(self, product_id: int) -> CartChange:
        with self._lock:
            line = self.active.find(product_id)
            if line is None:
                return CartChange(False, NOT_IN_CART)
            self.active.lines.remove(line)
            return CartChange(True)

    def hold(self) -> CartChange:
        with self._lock:
            if self.active.is_empty:
                return CartChange(False, EMPTY_CART)
            self.held.append(self.active.copy())
            self.active = Cart()
            return CartChange(True)

    def resume(self, index: int) -> Cart:
        with self._lock:
            if not 0 <= index < len(self.held):
                raise CartError("No held cart at that position", details={"index": index, "held": len(self.held)})
            if not self.active.is_empty:
                raise CartError("Hold or clear the current cart before resuming another")
            self.active = self.held.pop(index)
            return self.active.copy()

    def clear(self) -> None:
        with self._lock:
            self.active = Cart()

    def checkout_copy(self) -> Cart:
        """Value copy of the active cart for the commit engine."""
        with self._lock:
            return self.active.copy()

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "operator_id": self.operator_id,
                "active": self.active.to_dict(),
                "held": [cart.to_dict() for cart in self.held],
            }


def _live_stock(product_id: int) -> int | None:
    from .inventory_service import get_current_stock
    return get_current_stock(product_id)


class CartRegistry:
    """Per-operator cart sessions living in this process."""

    def __init__(self, stock_lookup: Callable[[int], int | None] | None = None):
        self._stock_lookup = stock_lookup
        self._sessions: dict[int, CartSession] = {}
        self._lock = threading.Lock()

    def get(self, operator_id: int) -> CartSession:
        with self._lock:
            session = self._sessions.get(operator_id)
            if session is None:
                session = CartSession(operator_id, stock_lookup=self._stock_lookup)
                self._sessions[operator_id] = session
            return session

    def end(self, operator_id: int) -> None:
        """Drop an operator's carts (logout)."""
        with self._lock:
            self._sessions.pop(operator_id, None)

    def reset(self) -> None:
        with self._lock:
            self._sessions.clear()


carts = CartRegistry(stock_lookup=_live_stock)
