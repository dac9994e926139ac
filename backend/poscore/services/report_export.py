# Overview: Sales summary export to CSV and Excel workbooks.

"""
Report Export

Takes the dict produced by reporting_service.summarize() and renders it
as a downloadable file. Amounts are written as Decimal currency values;
the taxed total comes from the summary, which computed it with apply_tax.
"""

from __future__ import annotations

import csv
import io

from poscore.money_utils import cents_to_decimal
from .errors import ReportError


EXPORT_FORMATS = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _sections(summary: dict) -> list[tuple[str, list[str], list[list]]]:
    """(title, header, rows) for every block of the report, in display order."""
    totals = [
        ["Period", f"{summary['start_date']} to {summary['end_date']}"],
        ["Total Sales", cents_to_decimal(summary["total_sales_cents"])],
        ["Total Sales (incl. tax)", cents_to_decimal(summary["total_sales_with_tax_cents"])],
        ["Total Transactions", summary["total_transactions"]],
        ["Average Transaction", cents_to_decimal(summary["average_transaction_cents"])],
    ]
    top = [
        [row["name"], row["quantity"], cents_to_decimal(row["revenue_cents"])]
        for row in summary["top_products"]
    ]
    daily = [
        [row["date"], row["transactions"], cents_to_decimal(row["total_sales_cents"])]
        for row in summary["daily_breakdown"]
    ]
    cashiers = [
        [row["operator_name"], row["transactions"], cents_to_decimal(row["total_sales_cents"])]
        for row in summary["cashier_performance"]
    ]
    return [
        ("Summary", ["Metric", "Value"], totals),
        ("Top Selling Products", ["Product Name", "Quantity Sold", "Revenue"], top),
        ("Daily Sales Breakdown", ["Date", "Transactions", "Sales"], daily),
        ("Cashier Performance", ["Cashier Name", "Transactions", "Sales"], cashiers),
    ]


def to_csv(summary: dict) -> bytes:
    """One CSV document; sections are separated by a blank row."""
    stream = io.StringIO()
    writer = csv.writer(stream)
    for i, (title, header, rows) in enumerate(_sections(summary)):
        if i:
            writer.writerow([])
        writer.writerow([title])
        writer.writerow(header)
        writer.writerows(rows)
    return stream.getvalue().encode("utf-8")


def to_xlsx(summary: dict) -> bytes:
    """One worksheet per section."""
    from openpyxl import Workbook
    from openpyxl.styles import Font

    wb = Workbook()
    wb.remove(wb.active)
    for title, header, rows in _sections(summary):
        sheet = wb.create_sheet(title=title[:31])
        sheet.append(header)
        for cell in sheet[1]:
            cell.font = Font(bold=True)
        for row in rows:
            sheet.append(row)

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def export_summary(summary: dict, fmt: str) -> tuple[bytes, str, str]:
    """
    Render a summary as (content, mimetype, filename).

    Raises ReportError for an unsupported format.
    """
    fmt = (fmt or "csv").strip().lower()
    if fmt not in EXPORT_FORMATS:
        raise ReportError(f"format must be one of: {', '.join(sorted(EXPORT_FORMATS))}")

    content = to_xlsx(summary) if fmt == "xlsx" else to_csv(summary)
    filename = f"sales-report_{summary['start_date']}_{summary['end_date']}.{fmt}"
    return content, EXPORT_FORMATS[fmt], filename
