from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z, utcnow
from poscore.money_utils import apply_tax, tax_amount


class Sale(db.Model):
    """
    Sale record: created exactly once per committed cart, immutable thereafter.

    subtotal_cents is stored pre-tax; the taxed total is derived on read
    through money_utils.apply_tax and is never persisted.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        db.Index("ix_sales_operator_created", "operator_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Lifecycle status: completed, held, cancelled
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")

    subtotal_cents = db.Column(db.Integer, nullable=False)

    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    operator_name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy="selectin",
        order_by="SaleLine.position",
        cascade="all, delete-orphan",
    )

    @property
    def total_cents(self) -> int:
        return apply_tax(self.subtotal_cents)

    def to_dict(self, include_lines: bool = True) -> dict:
        payload = {
            "id": self.id,
            "status": self.status,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": tax_amount(self.subtotal_cents),
            "total_cents": self.total_cents,
            "operator_id": self.operator_id,
            "operator_name": self.operator_name,
            "timestamp": to_utc_z(self.created_at),
            "line_count": len(self.lines),
        }
        if include_lines:
            payload["lines"] = [line.to_dict() for line in self.lines]
        return payload


class SaleLine(db.Model):
    """Value snapshot of a cart line at commit time."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "product_id", name="uq_sale_lines_sale_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
