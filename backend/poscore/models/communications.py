from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z, utcnow


class Notification(db.Model):
    """
    System-generated, role-addressed notification.

    Addressing is explicit: one NotificationTarget row per target role.
    user_id is reserved for per-user addressing and stays NULL for
    system alerts. The only mutation allowed is is_read false -> true.
    """
    __tablename__ = "notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # low-stock, sales, stock-update, price-change, system
    kind = db.Column(db.String(32), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)

    is_read = db.Column(db.Boolean, nullable=False, default=False, index=True)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    targets = db.relationship(
        "NotificationTarget",
        backref="notification",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def target_roles(self) -> list[str]:
        return sorted(t.role for t in self.targets)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "is_read": self.is_read,
            "read_at": to_utc_z(self.read_at) if self.read_at else None,
            "user_id": self.user_id,
            "target_roles": self.target_roles,
            "created_at": to_utc_z(self.created_at),
        }


class NotificationTarget(db.Model):
    """One addressed role for a notification."""
    __tablename__ = "notification_targets"
    __table_args__ = (
        db.UniqueConstraint("notification_id", "role", name="uq_notification_targets_role"),
        db.Index("ix_notification_targets_role", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(db.Integer, db.ForeignKey("notifications.id"), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False)
