# Overview: Notification fanout; role-addressed records produced as side effects of sales and movements.

from __future__ import annotations

from flask import current_app

from ..extensions import db, notification_feed
from ..models import Notification, NotificationTarget, Product
from poscore.money_utils import apply_tax, format_money
from poscore.time_utils import utcnow
from .auth_service import ROLE_CASHIER, ROLE_CHECKER, ROLE_OWNER, VALID_ROLES, Operator, require_role
from .errors import NotificationNotFound, ProductNotFound, ValidationError


KIND_LOW_STOCK = "low-stock"
KIND_SALES = "sales"
KIND_STOCK_UPDATE = "stock-update"
KIND_PRICE_CHANGE = "price-change"
KIND_SYSTEM = "system"
VALID_KINDS = {KIND_LOW_STOCK, KIND_SALES, KIND_STOCK_UPDATE, KIND_PRICE_CHANGE, KIND_SYSTEM}


def _normalize_roles(target_roles) -> list[str]:
    roles = sorted({(r or "").strip().lower() for r in (target_roles or [])})
    if not roles:
        raise ValidationError("target_roles must name at least one role")
    unknown = [r for r in roles if r not in VALID_ROLES]
    if unknown:
        raise ValidationError(f"Unknown target roles: {', '.join(unknown)}")
    return roles


def notify(kind: str, title: str, message: str, target_roles, *, user_id: int | None = None) -> Notification:
    """
    Persist one notification addressed to a set of roles and push it to
    live subscribers of those roles.

    Delivery is not tracked; is_read only moves on an explicit mark_read().
    """
    if kind not in VALID_KINDS:
        raise ValidationError(f"Unknown notification kind: {kind}")
    roles = _normalize_roles(target_roles)

    notification = Notification(
        kind=kind,
        title=title,
        message=message,
        is_read=False,
        user_id=user_id,
        created_at=utcnow(),
    )
    notification.targets = [NotificationTarget(role=role) for role in roles]
    db.session.add(notification)
    db.session.commit()

    notification_feed.publish(notification.to_dict())
    return notification


def _emit_best_effort(specs: list[tuple[str, str, str, list[str]]], *, context: str) -> list[Notification]:
    """
    Emit each notification independently; failures are logged and swallowed
    so the triggering operation's outcome never depends on them.
    """
    created = []
    for kind, title, message, roles in specs:
        try:
            created.append(notify(kind, title, message, roles))
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Notification emission failed (%s, kind=%s)", context, kind)
    return created


def emit_sale_notifications(sale, low_stock_names: list[str]) -> list[Notification]:
    """Owner and checker are told about the sale; low stock goes to both."""
    total = format_money(apply_tax(sale.subtotal_cents), current_app.config.get("CURRENCY_SYMBOL", ""))
    specs = [
        (
            KIND_SALES,
            "New Transaction Completed",
            f"Transaction of {total} completed by {sale.operator_name}",
            [ROLE_OWNER],
        ),
        (
            KIND_SALES,
            "Transaction Processed",
            f"Stock levels updated after transaction by {sale.operator_name}",
            [ROLE_CHECKER],
        ),
    ]
    if low_stock_names:
        specs.append(
            (
                KIND_LOW_STOCK,
                "Low Stock Alert",
                f"Items running low after transaction: {', '.join(low_stock_names)}",
                [ROLE_OWNER, ROLE_CHECKER],
            )
        )
    return _emit_best_effort(specs, context=f"sale {sale.id}")


def emit_movement_notifications(movement) -> list[Notification]:
    direction = "increased" if movement.delta > 0 else "decreased"
    specs = [
        (
            KIND_STOCK_UPDATE,
            "Stock Updated",
            f"{movement.product_name} stock {direction} by {movement.quantity} units by {movement.operator_name}",
            [ROLE_OWNER],
        ),
        (
            KIND_STOCK_UPDATE,
            "Inventory Updated",
            f"{movement.product_name} stock levels have been updated",
            [ROLE_CASHIER],
        ),
    ]
    return _emit_best_effort(specs, context=f"movement {movement.id}")


def emit_price_change(product: Product, *, old_price_cents: int, operator: Operator) -> list[Notification]:
    symbol = current_app.config.get("CURRENCY_SYMBOL", "")
    message = (
        f"{product.name} price changed from {format_money(old_price_cents, symbol)} "
        f"to {format_money(product.price_cents, symbol)} by {operator.name}"
    )
    return _emit_best_effort(
        [(KIND_PRICE_CHANGE, "Price Updated", message, [ROLE_CASHIER, ROLE_OWNER])],
        context=f"product {product.id}",
    )


def send_low_stock_alert(product_ids: list[int], operator: Operator) -> Notification:
    """A checker flags selected products to the owner. Errors propagate."""
    require_role(operator, ROLE_CHECKER)
    ids = sorted({int(pid) for pid in (product_ids or [])})
    if not ids:
        raise ValidationError("Select at least one product")

    products = db.session.query(Product).filter(Product.id.in_(ids), Product.is_active.is_(True)).all()
    found = {p.id for p in products}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise ProductNotFound("Product not found", details={"product_ids": missing})

    names = ", ".join(p.name for p in sorted(products, key=lambda p: p.name.lower()))
    return notify(
        KIND_LOW_STOCK,
        "Low Stock Alert",
        f"The following items are running low: {names}",
        [ROLE_OWNER],
    )


def _visible_to(role: str):
    return (
        db.session.query(Notification)
        .join(NotificationTarget, NotificationTarget.notification_id == Notification.id)
        .filter(NotificationTarget.role == role)
    )


def list_notifications(role: str, *, unread_only: bool = False, limit: int = 100) -> list[Notification]:
    """One-shot, newest first, restricted to notifications addressed to role."""
    query = _visible_to(role)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def unread_count(role: str) -> int:
    return _visible_to(role).filter(Notification.is_read.is_(False)).count()


def mark_read(notification_id: int, role: str) -> Notification:
    """
    One-way transition is_read false -> true. Repeating it is a no-op;
    a notification not addressed to role is reported as not found.
    """
    notification = _visible_to(role).filter(Notification.id == notification_id).first()
    if notification is None:
        raise NotificationNotFound("Notification not found", details={"notification_id": notification_id})

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.session.commit()
        notification_feed.publish(notification.to_dict())

    return notification


def subscribe(role: str, callback, *, limit: int = 100):
    """
    Live view of the notifications addressed to role.

    callback receives the role's full current list (newest first, as
    dicts) once on subscribe and again after every change addressed to
    role. Returns a cancellable Subscription; after cancel() no further
    lists are pushed.
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"Unknown role: {role}")

    def _push_list(_event=None):
        callback([n.to_dict() for n in list_notifications(role, limit=limit)])

    subscription = notification_feed.subscribe(role, _push_list)
    _push_list()
    return subscription
