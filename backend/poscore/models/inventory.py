from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data with its denormalized stock level.

    INVARIANTS:
    - current_stock is never negative after any mutation (floored at 0).
    - current_stock is written only by the commit engine and the movement
      reconciler; catalogue edits never touch it.
    - version_id is the optimistic lock: a stock write against a stale row
      raises StaleDataError and the whole atomic unit is retried.

    Money is stored in cents (fixed-point), never as a float.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.Index("ix_products_active_name", "is_active", "name"),
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("min_stock >= 0", name="ck_products_min_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(128), nullable=True, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return 0 < (self.current_stock or 0) <= (self.min_stock or 0)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "category": self.category,
            "price_cents": self.price_cents,
            "current_stock": self.current_stock,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Manual, signed stock adjustment recorded by a checker.

    Immutable once created, apart from the stock_applied flag which flips
    false -> true exactly once when the matching stock write commits.
    kind in -> +quantity; out, damaged, returned -> -quantity.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    # Snapshot at record time
    product_name = db.Column(db.String(255), nullable=False)

    kind = db.Column(db.String(16), nullable=False, index=True)  # in, out, damaged, returned
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    operator_name = db.Column(db.String(255), nullable=False)

    stock_applied = db.Column(db.Boolean, nullable=False, default=False, index=True)
    applied_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    @property
    def delta(self) -> int:
        return self.quantity if self.kind == "in" else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "kind": self.kind,
            "quantity": self.quantity,
            "delta": self.delta,
            "reason": self.reason,
            "operator_id": self.operator_id,
            "operator_name": self.operator_name,
            "stock_applied": self.stock_applied,
            "applied_at": to_utc_z(self.applied_at) if self.applied_at else None,
            "timestamp": to_utc_z(self.created_at),
        }
