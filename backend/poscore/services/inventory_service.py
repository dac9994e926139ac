# Overview: Service-layer operations for inventory; the store's read side, catalogue edits and cache publishing.

"""
Inventory Invariants (authoritative)

Stock model:
- Product.current_stock is the denormalized on-hand quantity.
- It is floored at zero after every mutation and guarded by a CHECK constraint.
- Only the commit engine (sales_service) and the reconciler
  (movement_service) change it; catalogue edits here never do, apart from
  the opening stock given when a product is created.

Read model:
- The product cache (extensions.product_cache) is an always-current,
  read-only view fed with committed rows via publish_products().
- refresh_cache() reloads it from the store (external change event).

Time:
- All internal datetimes are UTC-naive; API output uses ISO-8601 'Z'.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db, product_cache
from ..models import Product
from ..validation import (
    PRODUCT_CREATE_POLICY,
    PRODUCT_UPDATE_POLICY,
    enforce_rules_product,
    normalize_product_payload,
    validate_payload,
)
from .auth_service import ROLE_OWNER, Operator, require_role
from .concurrency import lock_for_update
from .errors import ProductNotFound, ValidationError


def get_product(product_id: int, *, lock: bool = False, include_inactive: bool = False) -> Product:
    """readOne(products, id): raises ProductNotFound when absent."""
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None or (not include_inactive and not product.is_active):
        raise ProductNotFound("Product not found", details={"product_id": product_id})
    return product


def find_by_barcode(barcode: str) -> Product:
    value = (barcode or "").strip()
    if not value:
        raise ValidationError("barcode is required")
    product = db.session.query(Product).filter_by(barcode=value, is_active=True).first()
    if product is None:
        raise ProductNotFound("Product not found", details={"barcode": value})
    return product


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    include_inactive: bool = False,
) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(term), Product.barcode.ilike(term)))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def list_low_stock_products() -> list[Product]:
    """Active products with 0 < current_stock <= min_stock."""
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.current_stock > 0,
            Product.current_stock <= Product.min_stock,
        )
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .all()
    )


def list_out_of_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.current_stock == 0)
        .order_by(Product.name.asc())
        .all()
    )


def get_current_stock(product_id: int) -> int | None:
    """Live stock for cart checks; None when the product is gone or inactive."""
    row = (
        db.session.query(Product.current_stock)
        .filter(Product.id == product_id, Product.is_active.is_(True))
        .first()
    )
    return int(row[0]) if row is not None else None


def create_product(payload: dict, operator: Operator) -> Product:
    require_role(operator, ROLE_OWNER)

    patch = validate_payload(
        model=Product,
        payload=normalize_product_payload(payload),
        policy=PRODUCT_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_product(patch)

    product = Product(
        name=patch["name"],
        price_cents=patch["price_cents"],
        barcode=patch.get("barcode"),
        category=patch.get("category"),
        min_stock=patch.get("min_stock") or 0,
        current_stock=patch.get("current_stock") or 0,
        is_active=True,
    )
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("A product with this barcode already exists", details={"barcode": patch.get("barcode")})

    publish_products([product])
    return product


def update_product(product_id: int, payload: dict, operator: Operator) -> Product:
    """
    Update catalogue fields (name, price, barcode, category, min_stock).

    current_stock is rejected: stock only moves through sales and movements.
    A price change fans out a price-change notification (best-effort).
    """
    require_role(operator, ROLE_OWNER)

    payload = normalize_product_payload(payload)
    if "current_stock" in payload:
        raise ValidationError("current_stock cannot be edited; record a stock movement instead")

    patch = validate_payload(
        model=Product,
        payload=payload,
        policy=PRODUCT_UPDATE_POLICY,
        partial=True,
    )
    enforce_rules_product(patch)

    product = get_product(product_id)
    old_price = product.price_cents

    for key, value in patch.items():
        setattr(product, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("A product with this barcode already exists", details={"barcode": patch.get("barcode")})

    publish_products([product])

    if "price_cents" in patch and patch["price_cents"] != old_price:
        from .notification_service import emit_price_change
        emit_price_change(product, old_price_cents=old_price, operator=operator)

    return product


def deactivate_product(product_id: int, operator: Operator) -> Product:
    """Soft delete: sale lines and movements keep referencing the row."""
    require_role(operator, ROLE_OWNER)
    product = get_product(product_id)
    product.is_active = False
    db.session.commit()
    publish_products([product])
    return product


def refresh_cache() -> list[dict]:
    """Reload the product cache from the store and push the full set."""
    snapshots = [p.to_dict() for p in list_products()]
    product_cache.load(snapshots)
    return snapshots


def publish_products(products) -> None:
    """
    Push committed product rows into the live cache.

    Runs after the owning transaction committed; a failure here never
    undoes the write, it only leaves the cache to be refreshed.
    """
    try:
        if not product_cache.loaded:
            refresh_cache()
            return
        active = [p.to_dict() for p in products if p.is_active]
        if active:
            product_cache.apply(active)
        for p in products:
            if not p.is_active:
                product_cache.discard(p.id)
    except Exception:
        current_app.logger.exception("Failed to publish product changes to cache")
        product_cache.clear()


def subscribe_products(callback):
    """Subscribe to full product-set pushes; returns a cancellable Subscription."""
    if not product_cache.loaded:
        refresh_cache()
    return product_cache.subscribe(callback)
