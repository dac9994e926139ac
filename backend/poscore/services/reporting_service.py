# Overview: Report Aggregator; read-only rollups over completed sale records.

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from poscore.extensions import db
from poscore.models import Sale, SaleLine
from poscore.money_utils import apply_tax, divide_cents
from poscore.time_utils import days_before, end_of_day, one_month_before, parse_iso_date, start_of_day, to_utc_z, utcnow
from .errors import ReportError, StoreUnavailable


ROLLUP_PERIODS = ("today", "week", "month")


def _as_date(value, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_date(value)
        except ValueError:
            raise ReportError(f"{field} must be an ISO date (YYYY-MM-DD)")
        if parsed is not None:
            return parsed
    raise ReportError(f"{field} is required")


def _top_products_limit() -> int:
    from flask import current_app
    return int(current_app.config.get("TOP_PRODUCTS_LIMIT", 10))


def _completed_between(query, start_dt: datetime, end_dt: datetime | None):
    query = query.filter(Sale.status == "completed", Sale.created_at >= start_dt)
    if end_dt is not None:
        query = query.filter(Sale.created_at <= end_dt)
    return query


def _totals(start_dt: datetime, end_dt: datetime | None) -> dict:
    total_cents, count = _completed_between(
        db.session.query(
            func.coalesce(func.sum(Sale.subtotal_cents), 0),
            func.count(Sale.id),
        ),
        start_dt,
        end_dt,
    ).one()
    total_cents = int(total_cents or 0)
    count = int(count or 0)
    return {
        "total_sales_cents": total_cents,
        "total_sales_with_tax_cents": apply_tax(total_cents),
        "total_transactions": count,
        "average_transaction_cents": divide_cents(total_cents, count),
    }


def _top_products(start_dt: datetime, end_dt: datetime | None) -> list[dict]:
    revenue = func.sum(SaleLine.line_total_cents)
    quantity = func.sum(SaleLine.quantity)
    rows = _completed_between(
        db.session.query(
            SaleLine.product_id.label("product_id"),
            func.max(SaleLine.product_name).label("name"),
            quantity.label("quantity"),
            revenue.label("revenue_cents"),
        ).join(Sale, SaleLine.sale_id == Sale.id),
        start_dt,
        end_dt,
    ).group_by(SaleLine.product_id).order_by(
        revenue.desc(), quantity.desc(), SaleLine.product_id.asc()
    ).limit(_top_products_limit()).all()

    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "quantity": int(row.quantity or 0),
            "revenue_cents": int(row.revenue_cents or 0),
        }
        for row in rows
    ]


def _daily_breakdown(start_dt: datetime, end_dt: datetime | None) -> list[dict]:
    # Calendar date of the stored (UTC) timestamp
    day_expr = func.strftime("%Y-%m-%d", Sale.created_at)
    rows = _completed_between(
        db.session.query(
            day_expr.label("day"),
            func.sum(Sale.subtotal_cents).label("total_cents"),
            func.count(Sale.id).label("transactions"),
        ),
        start_dt,
        end_dt,
    ).group_by("day").order_by("day").all()

    return [
        {
            "date": row.day,
            "total_sales_cents": int(row.total_cents or 0),
            "transactions": int(row.transactions or 0),
        }
        for row in rows
    ]


def _cashier_performance(start_dt: datetime, end_dt: datetime | None) -> list[dict]:
    total = func.sum(Sale.subtotal_cents)
    rows = _completed_between(
        db.session.query(
            Sale.operator_id.label("operator_id"),
            func.max(Sale.operator_name).label("operator_name"),
            total.label("total_cents"),
            func.count(Sale.id).label("transactions"),
        ),
        start_dt,
        end_dt,
    ).group_by(Sale.operator_id).order_by(total.desc(), Sale.operator_id.asc()).all()

    return [
        {
            "operator_id": row.operator_id,
            "operator_name": row.operator_name,
            "total_sales_cents": int(row.total_cents or 0),
            "transactions": int(row.transactions or 0),
        }
        for row in rows
    ]


def _summary_between(start_dt: datetime, end_dt: datetime | None) -> dict:
    try:
        summary = _totals(start_dt, end_dt)
        summary["top_products"] = _top_products(start_dt, end_dt)
        summary["daily_breakdown"] = _daily_breakdown(start_dt, end_dt)
        summary["cashier_performance"] = _cashier_performance(start_dt, end_dt)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreUnavailable(
            "Report could not be generated; try again",
            details={"reason": exc.__class__.__name__},
        ) from exc
    return summary


def summarize(start_date, end_date) -> dict:
    """
    Sales summary over [start_date 00:00, end_date end-of-day], inclusive.

    Totals are pre-tax subtotals; total_sales_with_tax_cents is the export
    figure. Pure read: identical arguments and no intervening writes give
    identical results.
    """
    start = _as_date(start_date, "start_date")
    end = _as_date(end_date, "end_date")
    if start > end:
        raise ReportError("start_date must be on or before end_date")

    summary = _summary_between(start_of_day(start), end_of_day(end))
    summary["start_date"] = start.isoformat()
    summary["end_date"] = end.isoformat()
    return summary


def _window_start(period: str, now: datetime) -> datetime:
    if period == "today":
        return start_of_day(now.date())
    if period == "week":
        return days_before(now, 7)
    if period == "month":
        return one_month_before(now)
    raise ReportError(f"period must be one of: {', '.join(ROLLUP_PERIODS)}")


def rollup(period: str, now: datetime | None = None) -> dict:
    """Full summary over a fixed window ending now: today, week or month."""
    now = now or utcnow()
    start_dt = _window_start(period, now)
    end_dt = end_of_day(now.date()) if period == "today" else None

    summary = _summary_between(start_dt, end_dt)
    summary["period"] = period
    summary["window_start"] = to_utc_z(start_dt)
    return summary


def sales_rollups(now: datetime | None = None) -> dict:
    """Dashboard totals for all three windows."""
    now = now or utcnow()
    result = {}
    for period in ROLLUP_PERIODS:
        start_dt = _window_start(period, now)
        end_dt = end_of_day(now.date()) if period == "today" else None
        try:
            result[period] = _totals(start_dt, end_dt)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailable(
                "Report could not be generated; try again",
                details={"reason": exc.__class__.__name__},
            ) from exc
    result["as_of"] = to_utc_z(now)
    return result
