"""
Transaction Commit Engine

WHY: A finalized cart becomes exactly one sale record plus one stock
decrement per product, in a single store transaction. Either every effect
is persisted or none is.

CRITICAL:
- Products are read and written under the store's write lock (BEGIN
  IMMEDIATE on SQLite, SELECT ... FOR UPDATE elsewhere) and carry an
  optimistic version column, so two checkouts of the last unit serialize:
  the second one re-reads the decremented stock and fails InsufficientStock.
- Stock is floored at zero after the decrement.
- Notifications and cache pushes run only after the commit, outside the
  atomic unit, and can never fail the sale.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Sale, SaleLine
from poscore.time_utils import utcnow
from .auth_service import ROLE_CASHIER, Operator, require_role
from .cart_service import Cart
from .concurrency import atomic_write, lock_for_update
from .errors import InsufficientStock, ProductNotFound, SaleNotFound, ValidationError
from .inventory_service import publish_products


PAYMENT_METHODS = {"cash", "card"}


def _aggregate_lines(cart: Cart) -> dict[int, int]:
    """Requested quantity per product; a cart holds at most one line per product."""
    totals: dict[int, int] = {}
    for line in cart.lines:
        if line.quantity <= 0:
            raise ValidationError(
                "Cart line quantity must be greater than zero",
                details={"product_id": line.product_id, "quantity": line.quantity},
            )
        if line.product_id in totals:
            raise ValidationError("Duplicate cart line", details={"product_id": line.product_id})
        totals[line.product_id] = line.quantity
    return totals


def _load_locked_products(product_ids) -> dict[int, Product]:
    ids = sorted(product_ids)
    products = lock_for_update(db.session.query(Product).filter(Product.id.in_(ids))).all()
    by_id = {p.id: p for p in products if p.is_active}
    missing = [pid for pid in ids if pid not in by_id]
    if missing:
        raise ProductNotFound("Product not found", details={"product_ids": missing})
    return by_id


def _validate_on_hand(requested: dict[int, int], products: dict[int, Product]) -> None:
    insufficient = []
    for product_id, qty in requested.items():
        on_hand = products[product_id].current_stock
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStock(
            "Insufficient stock to complete sale",
            details={"items": insufficient},
        )


def commit_sale(cart: Cart, operator: Operator, payment_method: str = "cash") -> Sale:
    """
    Commit a cart as a completed sale.

    Raises ValidationError (empty cart, bad payment method, missing
    product), AuthorizationError (not a cashier), InsufficientStock, or
    StoreUnavailable. On any of these nothing has been written.
    """
    require_role(operator, ROLE_CASHIER)

    if cart is None or cart.is_empty:
        raise ValidationError("Cannot commit an empty cart")

    method = (payment_method or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(sorted(PAYMENT_METHODS))}",
            details={"payment_method": payment_method},
        )

    requested = _aggregate_lines(cart)
    # Unit prices and names are the cart's add-time snapshot
    snapshot_lines = list(cart.lines)

    def _op():
        products = _load_locked_products(requested.keys())
        _validate_on_hand(requested, products)

        sale = Sale(
            status="completed",
            payment_method=method,
            subtotal_cents=sum(line.unit_price_cents * line.quantity for line in snapshot_lines),
            operator_id=operator.id,
            operator_name=operator.name,
            created_at=utcnow(),
        )
        sale.lines = [
            SaleLine(
                product_id=line.product_id,
                position=i,
                product_name=line.name,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                line_total_cents=line.unit_price_cents * line.quantity,
            )
            for i, line in enumerate(snapshot_lines)
        ]
        db.session.add(sale)

        low_stock = []
        for product_id, qty in requested.items():
            product = products[product_id]
            product.current_stock = max(0, product.current_stock - qty)
            if 0 < product.current_stock <= product.min_stock:
                low_stock.append(product)

        db.session.flush()
        return sale, [products[pid] for pid in sorted(products)], low_stock

    sale, touched, low_stock = atomic_write(_op)

    current_app.logger.info(
        "Sale %s committed by operator %s (%d lines, subtotal_cents=%d)",
        sale.id, operator.id, len(sale.lines), sale.subtotal_cents,
    )

    publish_products(touched)

    from .notification_service import emit_sale_notifications
    emit_sale_notifications(sale, sorted(p.name for p in low_stock))

    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if sale is None:
        raise SaleNotFound("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(*, operator_id: int | None = None, limit: int = 100, offset: int = 0) -> list[Sale]:
    """Sale history, newest first; optionally one operator's sales."""
    query = db.session.query(Sale)
    if operator_id is not None:
        query = query.filter(Sale.operator_id == operator_id)
    return (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
