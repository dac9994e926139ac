# Overview: In-process live feeds; event-driven product cache and role-filtered notification delivery.

"""
Live read models.

Consumers never register raw callbacks: every subscribe() hands back a
Subscription whose cancel() is the only way to stop delivery. Once cancel()
returns, the callback will not run again for that subscription, even if a
publish is in flight on another thread.

ProductCache owns the current product set. It is updated only by applying
committed changes (commit engine, reconciler, catalogue edits) or by
accepting an external reload; every change pushes the full current set.

NotificationFeed delivers each new or updated notification to subscribers
whose role is in the notification's target_roles.
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


class Subscription:
    """Handle for one subscriber; cancellation is final."""

    def __init__(self, feed, callback: Callable, *, role: str | None = None):
        self.id = None
        self.role = role
        self._feed = feed
        self._callback = callback
        # Re-entrant so a callback may cancel its own subscription
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, payload) -> bool:
        with self._lock:
            if not self._active:
                return False
            self._callback(payload)
            return True

    def cancel(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._feed._detach(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel()


class _Feed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def _attach(self, sub: Subscription) -> Subscription:
        with self._lock:
            sub.id = next(self._ids)
            self._subscriptions[sub.id] = sub
        return sub

    def _detach(self, sub: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(sub.id, None)

    def _active_subscriptions(self) -> list[Subscription]:
        with self._lock:
            return list(self._subscriptions.values())

    def _deliver(self, sub: Subscription, payload) -> None:
        try:
            sub.deliver(payload)
        except Exception:
            logger.exception("Feed subscriber %s failed", sub.id)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def close(self) -> None:
        """Cancel every subscription (shutdown)."""
        for sub in self._active_subscriptions():
            sub.cancel()


class ProductCache(_Feed):
    """Current product set, keyed by product id."""

    def __init__(self):
        super().__init__()
        self._products: dict[int, dict] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def _sorted_snapshot(self) -> list[dict]:
        rows = sorted(self._products.values(), key=lambda p: ((p.get("name") or "").lower(), p["id"]))
        return [copy.deepcopy(p) for p in rows]

    def snapshot(self) -> list[dict]:
        with self._lock:
            return self._sorted_snapshot()

    def get(self, product_id: int) -> dict | None:
        with self._lock:
            row = self._products.get(product_id)
            return copy.deepcopy(row) if row is not None else None

    def load(self, snapshots: Iterable[dict]) -> None:
        """Replace the whole set (initial load or external change event)."""
        with self._lock:
            self._products = {p["id"]: copy.deepcopy(p) for p in snapshots}
            self._loaded = True
            current = self._sorted_snapshot()
        self._push(current)

    def apply(self, snapshots: Iterable[dict]) -> None:
        """Upsert committed product rows and push the new set."""
        changed = False
        with self._lock:
            for p in snapshots:
                self._products[p["id"]] = copy.deepcopy(p)
                changed = True
            current = self._sorted_snapshot()
        if changed:
            self._push(current)

    def discard(self, product_id: int) -> None:
        with self._lock:
            removed = self._products.pop(product_id, None)
            current = self._sorted_snapshot()
        if removed is not None:
            self._push(current)

    def clear(self) -> None:
        with self._lock:
            self._products = {}
            self._loaded = False

    def subscribe(self, callback: Callable[[list[dict]], None]) -> Subscription:
        """Subscribe to full-set pushes; the current set is delivered first."""
        sub = self._attach(Subscription(self, callback))
        self._deliver(sub, self.snapshot())
        return sub

    def _push(self, current: list[dict]) -> None:
        for sub in self._active_subscriptions():
            self._deliver(sub, copy.deepcopy(current))


class NotificationFeed(_Feed):
    """
    Role-filtered fanout of notification change events.

    Each publish carries the one notification that was created or changed;
    notification_service.subscribe() turns these events into full-list
    pushes for its callers.
    """

    def subscribe(self, role: str, callback: Callable[[dict], None]) -> Subscription:
        if not role:
            raise ValueError("role is required to subscribe to notifications")
        return self._attach(Subscription(self, callback, role=role))

    def publish(self, notification: dict) -> int:
        """Deliver to every subscriber whose role is targeted; returns delivery count."""
        targets = set(notification.get("target_roles") or [])
        delivered = 0
        for sub in self._active_subscriptions():
            if sub.role not in targets:
                continue
            try:
                if sub.deliver(copy.deepcopy(notification)):
                    delivered += 1
            except Exception:
                logger.exception("Notification subscriber %s failed", sub.id)
        return delivered
