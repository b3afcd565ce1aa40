from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from dental_ledger.core.errors import LedgerValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(value: Decimal | int | str) -> Decimal:
    """Round to cents, half-up (0.005 -> 0.01), the way receipts are printed."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal


def compute_totals(
    prices: Iterable[Decimal],
    tax_rate: Decimal,
    discount: Decimal = ZERO,
    discount_percentage: Decimal | None = None,
) -> InvoiceTotals:
    """A discount is either a fixed amount or a percentage of the subtotal, never both."""
    subtotal = round_money(sum((round_money(price) for price in prices), ZERO))
    if discount_percentage is not None:
        if discount:
            raise LedgerValidationError("Give either a discount amount or a percentage, not both")
        if not ZERO <= discount_percentage <= 100:
            raise LedgerValidationError("Discount percentage must be between 0 and 100")
        discount = subtotal * discount_percentage / 100
    discount = round_money(discount)
    if discount < 0:
        raise LedgerValidationError("Discount cannot be negative")
    if discount > subtotal:
        raise LedgerValidationError("Discount cannot exceed the subtotal")
    taxable = subtotal - discount
    tax = round_money(taxable * tax_rate)
    total = round_money(taxable + tax)
    return InvoiceTotals(
        subtotal=subtotal,
        discount=discount,
        tax_rate=tax_rate,
        tax=tax,
        total=total,
    )
