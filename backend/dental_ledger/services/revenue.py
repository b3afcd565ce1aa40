from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.core.errors import LedgerValidationError
from dental_ledger.models.invoice import COMMITTED_STATUSES, Invoice, InvoiceStatus
from dental_ledger.services.pricing import ZERO


@dataclass
class DailyRevenue:
    date: date
    invoices: int
    total: Decimal


@dataclass
class RevenueReport:
    start_date: date | None
    end_date: date | None
    total_invoices: int = 0
    total_revenue: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_pending: Decimal = ZERO
    total_cancelled: Decimal = ZERO
    payment_method_breakdown: dict[str, Decimal] = field(default_factory=dict)
    daily_revenue: list[DailyRevenue] = field(default_factory=list)


def revenue_report(
    db: Session, start_date: date | None = None, end_date: date | None = None
) -> RevenueReport:
    """Roll up committed invoices whose issued_date falls in the inclusive range.

    Drafts have no issued_date and never count. Cancelled invoices are
    reported separately in ``total_cancelled`` and excluded from revenue.
    """
    if start_date and end_date and start_date > end_date:
        raise LedgerValidationError("start_date must not be after end_date")

    stmt = select(Invoice).where(
        Invoice.issued_date.is_not(None),
        Invoice.status.in_([*COMMITTED_STATUSES, InvoiceStatus.cancelled]),
    )
    if start_date:
        stmt = stmt.where(Invoice.issued_date >= start_date)
    if end_date:
        stmt = stmt.where(Invoice.issued_date <= end_date)
    stmt = stmt.order_by(Invoice.issued_date.asc(), Invoice.id.asc())

    report = RevenueReport(start_date=start_date, end_date=end_date)
    by_day: dict[date, DailyRevenue] = {}
    for invoice in db.scalars(stmt):
        if invoice.status == InvoiceStatus.cancelled:
            report.total_cancelled += invoice.total
            continue
        report.total_invoices += 1
        report.total_revenue += invoice.total
        report.total_paid += invoice.amount_paid
        report.total_pending += invoice.balance
        for payment in invoice.payments:
            key = payment.method.value
            report.payment_method_breakdown[key] = (
                report.payment_method_breakdown.get(key, ZERO) + payment.amount
            )
        day = by_day.setdefault(
            invoice.issued_date, DailyRevenue(date=invoice.issued_date, invoices=0, total=ZERO)
        )
        day.invoices += 1
        day.total += invoice.total

    report.daily_revenue = [by_day[day] for day in sorted(by_day)]
    return report
