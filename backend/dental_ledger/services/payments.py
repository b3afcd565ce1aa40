from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm import Session

from dental_ledger.core.errors import (
    AlreadyCancelled,
    AlreadyPaid,
    InvoiceNotPayable,
    LedgerValidationError,
    OverpaymentRejected,
)
from dental_ledger.models.invoice import Invoice, InvoiceStatus, Payment, PaymentMethod
from dental_ledger.models.tooth_treatment import ToothTreatmentRecord
from dental_ledger.models.user import User
from dental_ledger.services.audit import log_event, snapshot_model
from dental_ledger.services.invoicing import lock_invoice
from dental_ledger.services.pricing import ZERO, round_money

logger = logging.getLogger("dental_ledger.payments")

UNPAYABLE_STATUSES = (InvoiceStatus.draft, InvoiceStatus.cancelled)


def update_status_from_payments(invoice: Invoice) -> None:
    if invoice.status in (InvoiceStatus.draft, InvoiceStatus.cancelled):
        return
    paid = invoice.amount_paid
    if paid <= ZERO:
        invoice.status = InvoiceStatus.issued
    elif paid < invoice.total:
        invoice.status = InvoiceStatus.partially_paid
    else:
        invoice.status = InvoiceStatus.paid


def register_payment(
    db: Session,
    *,
    invoice_id: int,
    amount: Decimal,
    method: PaymentMethod,
    actor: User,
    paid_at: datetime | None = None,
    reference: str | None = None,
    notes: str | None = None,
) -> Payment:
    amount = round_money(amount)
    if amount <= ZERO:
        raise LedgerValidationError("Payment amount must be positive")

    invoice = lock_invoice(db, invoice_id)
    if invoice.status in UNPAYABLE_STATUSES:
        raise InvoiceNotPayable(f"Invoice is {invoice.status.value}")
    if invoice.amount_paid + amount > invoice.total:
        raise OverpaymentRejected(
            f"Payment of {amount} exceeds the outstanding balance of {invoice.balance}"
        )

    payment = Payment(
        amount=amount,
        method=method,
        paid_at=paid_at or datetime.now(timezone.utc),
        reference=reference,
        notes=notes,
        received_by_user_id=actor.id,
    )
    invoice.payments.append(payment)
    db.flush()

    before_status = invoice.status
    update_status_from_payments(invoice)
    invoice.updated_by_user_id = actor.id
    log_event(
        db,
        actor=actor,
        action="payment.recorded",
        entity_type="invoice",
        entity_id=str(invoice.id),
        after_data={
            "payment_id": payment.id,
            "amount": str(amount),
            "method": method.value,
            "balance": str(invoice.balance),
            "status": invoice.status.value,
        },
    )
    if before_status != InvoiceStatus.paid and invoice.status == InvoiceStatus.paid:
        log_event(
            db,
            actor=actor,
            action="invoice.paid",
            entity_type="invoice",
            entity_id=str(invoice.id),
            after_obj=invoice,
        )
    db.commit()
    db.refresh(payment)
    logger.info(
        "Payment %s of %s recorded on invoice %s (%s)",
        payment.id,
        amount,
        invoice.invoice_number,
        invoice.status.value,
    )
    return payment


def cancel_invoice(db: Session, *, invoice_id: int, reason: str, actor: User) -> Invoice:
    """Cancel an invoice and release its treatment records for rebilling.

    Issued and partially paid invoices can be cancelled, and so can drafts,
    since a draft already claims its lines. A paid invoice is final unless
    nothing was ever collected on it (a zero-total invoice). Recorded
    payments are kept.
    """
    reason = (reason or "").strip()
    if not reason:
        raise LedgerValidationError("A cancellation reason is required")

    invoice = lock_invoice(db, invoice_id)
    if invoice.status == InvoiceStatus.cancelled:
        raise AlreadyCancelled()
    if invoice.status == InvoiceStatus.paid and invoice.amount_paid > ZERO:
        raise AlreadyPaid()

    before_data = snapshot_model(invoice)
    invoice.status = InvoiceStatus.cancelled
    invoice.cancellation_reason = reason
    invoice.cancelled_at = datetime.now(timezone.utc)
    invoice.updated_by_user_id = actor.id
    released = db.execute(
        update(ToothTreatmentRecord)
        .where(ToothTreatmentRecord.invoice_id == invoice.id)
        .values(invoice_id=None, updated_by_user_id=actor.id)
        .execution_options(synchronize_session=False)
    ).rowcount
    log_event(
        db,
        actor=actor,
        action="invoice.cancelled",
        entity_type="invoice",
        entity_id=str(invoice.id),
        before_data=before_data,
        after_obj=invoice,
    )
    db.commit()
    db.refresh(invoice)
    logger.info(
        "Invoice %s cancelled, %s treatment records released", invoice.invoice_number, released
    )
    return invoice
