# Overview: Fixed-point money helpers; the single home of tax policy.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal("0.01")
DEFAULT_TAX_RATE = Decimal("0.12")


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def tax_rate() -> Decimal:
    """Configured tax rate, falling back to the store default outside an app."""
    from flask import current_app, has_app_context

    if has_app_context():
        return Decimal(str(current_app.config.get("TAX_RATE", DEFAULT_TAX_RATE)))
    return DEFAULT_TAX_RATE


def apply_tax(subtotal_cents: int, rate: Decimal | None = None) -> int:
    """
    Taxed total for a pre-tax subtotal, in cents.

    Every caller that shows a payable amount (receipt, notification,
    report export) goes through here; totals are never stored taxed.
    """
    rate = tax_rate() if rate is None else rate
    return _round_cents(Decimal(subtotal_cents) * (Decimal(1) + rate))


def tax_amount(subtotal_cents: int, rate: Decimal | None = None) -> int:
    return apply_tax(subtotal_cents, rate) - subtotal_cents


def divide_cents(total_cents: int, count: int) -> int:
    """Average in cents (half-up); 0 when there is nothing to divide by."""
    if not count:
        return 0
    return _round_cents(Decimal(total_cents) / Decimal(count))


def cents_to_decimal(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(CENT)


def format_money(cents: int, symbol: str | None = None) -> str:
    if symbol is None:
        from flask import current_app, has_app_context

        symbol = current_app.config.get("CURRENCY_SYMBOL", "") if has_app_context() else ""
    return f"{symbol}{cents_to_decimal(cents):,.2f}"


def parse_price_cents(value) -> int:
    """
    Accept a price as cents (int) or as a decimal amount ("12.50", Decimal).

    Floats are rejected so that binary rounding never reaches storage.
    """
    if isinstance(value, bool):
        raise ValueError("price must be a number")
    if isinstance(value, int):
        cents = value
    elif isinstance(value, (str, Decimal)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError("price must be a decimal amount")
        if not amount.is_finite():
            raise ValueError("price must be a finite decimal amount")
        try:
            exact = amount == amount.quantize(CENT)
        except InvalidOperation:
            raise ValueError("price must be a decimal amount")
        if not exact:
            raise ValueError("price cannot have fractional cents")
        cents = int(amount * 100)
    else:
        raise ValueError("price must be given in cents or as a decimal string")
    if cents < 0:
        raise ValueError("price cannot be negative")
    return cents
