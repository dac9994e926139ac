# Overview: Stock Movement Reconciler; records checker adjustments and applies their signed deltas.

"""
Movement Invariants

- A movement row is immutable once recorded, apart from stock_applied,
  which flips false -> true exactly once, in the same transaction as the
  matching stock write.
- Recording and applying are two transactions. If the second one fails
  the movement stays stock_applied=False and PartialApply is raised;
  repair_unapplied_movements() finishes the job later.
- Product.current_stock = max(0, current_stock + delta): the ledger of
  movements may imply negative stock, the visible stock never goes below 0.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, StockMovement
from poscore.time_utils import utcnow
from poscore.validation import parse_quantity
from .auth_service import ROLE_CHECKER, Operator, require_role
from .concurrency import atomic_write, lock_for_update
from .errors import MovementNotFound, PartialApply, PosError, ValidationError
from .inventory_service import get_product, publish_products


KIND_IN = "in"
KIND_OUT = "out"
KIND_DAMAGED = "damaged"
KIND_RETURNED = "returned"
VALID_KINDS = (KIND_IN, KIND_OUT, KIND_DAMAGED, KIND_RETURNED)

MAX_REASON_LENGTH = 255


def signed_delta(kind: str, quantity: int) -> int:
    """in -> +quantity; out, damaged, returned -> -quantity."""
    if kind not in VALID_KINDS:
        raise ValidationError(
            f"kind must be one of: {', '.join(VALID_KINDS)}",
            details={"kind": kind},
        )
    return quantity if kind == KIND_IN else -quantity


def _apply_stock(movement_id: int) -> tuple[StockMovement, Product, bool]:
    """Second transaction: stock write plus the stock_applied flip, together."""
    def _op():
        movement = lock_for_update(db.session.query(StockMovement).filter_by(id=movement_id)).first()
        if movement is None:
            raise MovementNotFound("Movement not found", details={"movement_id": movement_id})
        product = lock_for_update(db.session.query(Product).filter_by(id=movement.product_id)).first()
        if movement.stock_applied:
            return movement, product, False

        product.current_stock = max(0, product.current_stock + movement.delta)
        movement.stock_applied = True
        movement.applied_at = utcnow()
        return movement, product, True

    return atomic_write(_op)


def apply_movement(
    product_id: int,
    kind: str,
    quantity,
    operator: Operator,
    reason: str | None = None,
) -> StockMovement:
    """
    Record a manual stock movement and apply it to the product.

    Raises AuthorizationError (not a checker), ProductNotFound,
    InvalidQuantity / ValidationError, StoreUnavailable (nothing recorded),
    or PartialApply (recorded, stock not yet applied).
    """
    require_role(operator, ROLE_CHECKER)

    qty = parse_quantity(quantity)
    kind = (kind or "").strip().lower()
    signed_delta(kind, qty)

    if reason is not None:
        reason = str(reason).strip() or None
        if reason and len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(f"reason exceeds max length {MAX_REASON_LENGTH}")

    product = get_product(product_id)

    def _record():
        movement = StockMovement(
            product_id=product.id,
            product_name=product.name,
            kind=kind,
            quantity=qty,
            reason=reason,
            operator_id=operator.id,
            operator_name=operator.name,
            stock_applied=False,
            created_at=utcnow(),
        )
        db.session.add(movement)
        db.session.flush()
        return movement.id

    movement_id = atomic_write(_record)

    try:
        movement, product, _ = _apply_stock(movement_id)
    except PosError as exc:
        current_app.logger.error(
            "Stock movement %s recorded but not applied (%s); run 'flask movements repair'",
            movement_id, exc,
        )
        raise PartialApply(
            "Movement was recorded but the stock update did not complete",
            details={"movement_id": movement_id, "product_id": product_id, "partial_apply": True},
        ) from exc

    current_app.logger.info(
        "Stock movement %s applied: product=%s kind=%s delta=%+d stock=%s",
        movement.id, product.id, movement.kind, movement.delta, product.current_stock,
    )

    publish_products([product])

    from .notification_service import emit_movement_notifications
    emit_movement_notifications(movement)

    return movement


def list_unapplied_movements() -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter(StockMovement.stock_applied.is_(False))
        .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
        .all()
    )


def repair_unapplied_movements() -> int:
    """
    Apply every recorded-but-unapplied movement, oldest first.

    Each movement is applied at most once: the flag is checked under the
    row lock inside the same transaction that writes stock. Returns the
    number of movements applied by this run.
    """
    repaired = 0
    touched: dict[int, Product] = {}
    for movement_id in [m.id for m in list_unapplied_movements()]:
        movement, product, applied = _apply_stock(movement_id)
        if not applied:
            continue
        touched[product.id] = product
        repaired += 1
        current_app.logger.info("Repaired stock movement %s (delta=%+d)", movement.id, movement.delta)

    if touched:
        publish_products(list(touched.values()))
    return repaired


def get_movement(movement_id: int) -> StockMovement:
    movement = db.session.query(StockMovement).filter_by(id=movement_id).first()
    if movement is None:
        raise MovementNotFound("Movement not found", details={"movement_id": movement_id})
    return movement


def list_movements(*, product_id: int | None = None, limit: int = 100, offset: int = 0) -> list[StockMovement]:
    """Movement history, newest first; optionally for one product."""
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    return (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
