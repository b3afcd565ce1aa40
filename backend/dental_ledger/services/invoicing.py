"""Invoice preview and commit.

A treatment record is billable when it is completed and not yet claimed by
an invoice. Committing claims the selected records with a single
conditional UPDATE (``invoice_id IS NULL``); if fewer rows are claimed than
were selected, some other commit got there first and the whole transaction
is rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, not_, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from dental_ledger.core.errors import (
    ConcurrentModification,
    EmptySelection,
    InvalidState,
    LedgerValidationError,
    NotFound,
    StaleLine,
)
from dental_ledger.models.invoice import OPEN_STATUSES, Invoice, InvoiceLine, InvoiceStatus
from dental_ledger.models.odontogram import Odontogram
from dental_ledger.models.tooth_treatment import ToothTreatmentRecord
from dental_ledger.models.user import User
from dental_ledger.services.audit import log_event
from dental_ledger.services.odontograms import get_odontogram_or_404
from dental_ledger.services.pricing import ZERO, InvoiceTotals, compute_totals, round_money
from dental_ledger.services.tax import TaxConfiguration

logger = logging.getLogger("dental_ledger.invoicing")


@dataclass(frozen=True)
class PreviewLine:
    treatment_record_id: int
    treatment_code: str
    treatment_name: str
    tooth_number: int | None
    is_global: bool
    doctor_name: str
    performed_date: date
    price: Decimal


@dataclass(frozen=True)
class InvoicePreview:
    odontogram_id: int
    patient_id: int
    patient_name: str | None
    tooth_treatments: list[PreviewLine]
    global_treatments: list[PreviewLine]
    subtotal: Decimal
    discount: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal


def format_invoice_number(invoice_id: int) -> str:
    return f"INV-{invoice_id:06d}"


def _eligible_stmt(odontogram_id: int):
    return (
        select(ToothTreatmentRecord)
        .where(
            ToothTreatmentRecord.odontogram_id == odontogram_id,
            ToothTreatmentRecord.is_completed.is_(True),
            ToothTreatmentRecord.invoice_id.is_(None),
        )
        .order_by(ToothTreatmentRecord.performed_date.asc(), ToothTreatmentRecord.id.asc())
    )


def _preview_line(record: ToothTreatmentRecord) -> PreviewLine:
    return PreviewLine(
        treatment_record_id=record.id,
        treatment_code=record.treatment_code,
        treatment_name=record.treatment_name,
        tooth_number=record.tooth_number,
        is_global=record.is_global,
        doctor_name=record.doctor_name,
        performed_date=record.performed_date,
        price=round_money(record.price),
    )


def preview_invoice(
    db: Session, *, odontogram_id: int, tax_config: TaxConfiguration, jurisdiction: str
) -> InvoicePreview:
    odontogram = get_odontogram_or_404(db, odontogram_id)
    records = list(db.scalars(_eligible_stmt(odontogram_id)))
    totals = compute_totals(
        [record.price for record in records], tax_config.rate_for(jurisdiction)
    )
    lines = [_preview_line(record) for record in records]
    return InvoicePreview(
        odontogram_id=odontogram.id,
        patient_id=odontogram.patient_id,
        patient_name=odontogram.patient_name,
        tooth_treatments=[line for line in lines if not line.is_global],
        global_treatments=[line for line in lines if line.is_global],
        subtotal=totals.subtotal,
        discount=totals.discount,
        tax_rate=totals.tax_rate,
        tax=totals.tax,
        total=totals.total,
    )


def _select_lines(
    db: Session,
    odontogram: Odontogram,
    eligible: list[ToothTreatmentRecord],
    treatment_record_ids: list[int] | None,
) -> list[ToothTreatmentRecord]:
    if treatment_record_ids is None:
        return eligible
    requested = list(dict.fromkeys(treatment_record_ids))
    if not requested:
        raise EmptySelection("No treatments selected")
    eligible_by_id = {record.id: record for record in eligible}
    selected: list[ToothTreatmentRecord] = []
    for record_id in requested:
        record = eligible_by_id.get(record_id)
        if record is None:
            other = db.get(ToothTreatmentRecord, record_id)
            if other is None or other.odontogram_id != odontogram.id:
                raise NotFound(f"Treatment record {record_id} not found on this odontogram")
            if other.invoice_id is not None:
                raise StaleLine(f"Treatment record {record_id} is already invoiced")
            raise InvalidState(f"Treatment record {record_id} is not completed")
        selected.append(record)
    return selected


def _check_due_date(due_date: date | None, issued_date: date | None) -> None:
    if due_date and issued_date and due_date < issued_date:
        raise LedgerValidationError("due_date must not be before the issue date")


def _initial_status(totals: InvoiceTotals, as_draft: bool) -> InvoiceStatus:
    if as_draft:
        return InvoiceStatus.draft
    # Nothing to collect: the invoice is settled the moment it is issued.
    if totals.total == ZERO:
        return InvoiceStatus.paid
    return InvoiceStatus.issued


def commit_invoice(
    db: Session,
    *,
    odontogram_id: int,
    actor: User,
    tax_config: TaxConfiguration,
    jurisdiction: str,
    treatment_record_ids: list[int] | None = None,
    discount: Decimal = ZERO,
    notes: str | None = None,
    issue_date: date | None = None,
    due_date: date | None = None,
    discount_percentage: Decimal | None = None,
    as_draft: bool = False,
) -> Invoice:
    odontogram = get_odontogram_or_404(db, odontogram_id)
    issued_date = None if as_draft else (issue_date or date.today())
    _check_due_date(due_date, issued_date)
    # Resolve the rate before any row is locked; the lookup may be remote.
    tax_rate = tax_config.rate_for(jurisdiction)
    try:
        eligible = list(
            db.scalars(_eligible_stmt(odontogram_id).with_for_update(of=ToothTreatmentRecord))
        )
    except OperationalError as exc:
        db.rollback()
        logger.warning("Timed out waiting for treatment locks on odontogram %s", odontogram_id)
        raise ConcurrentModification("Treatments are being invoiced by another session") from exc
    if not eligible:
        raise EmptySelection()
    selected = _select_lines(db, odontogram, eligible, treatment_record_ids)

    totals = compute_totals(
        [record.price for record in selected], tax_rate, discount, discount_percentage
    )
    status = _initial_status(totals, as_draft)
    invoice = Invoice(
        patient_id=odontogram.patient_id,
        odontogram_id=odontogram.id,
        issued_date=issued_date,
        due_date=due_date,
        status=status,
        subtotal=totals.subtotal,
        discount=totals.discount,
        discount_percentage=discount_percentage,
        tax_rate=totals.tax_rate,
        tax=totals.tax,
        total=totals.total,
        notes=notes,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
        lines=[
            InvoiceLine(
                treatment_record_id=record.id,
                treatment_code=record.treatment_code,
                description=record.treatment_name,
                tooth_number=record.tooth_number,
                is_global=record.is_global,
                price=round_money(record.price),
            )
            for record in selected
        ],
    )
    db.add(invoice)
    db.flush()
    invoice.invoice_number = format_invoice_number(invoice.id)

    selected_ids = [record.id for record in selected]
    claimed = db.execute(
        update(ToothTreatmentRecord)
        .where(
            ToothTreatmentRecord.id.in_(selected_ids),
            ToothTreatmentRecord.invoice_id.is_(None),
            ToothTreatmentRecord.is_completed.is_(True),
        )
        .values(invoice_id=invoice.id, updated_by_user_id=actor.id)
        .execution_options(synchronize_session=False)
    ).rowcount
    if claimed != len(selected_ids):
        db.rollback()
        logger.warning(
            "Invoice commit on odontogram %s lost the claim race (%s of %s lines)",
            odontogram_id,
            claimed,
            len(selected_ids),
        )
        raise StaleLine()

    log_event(
        db,
        actor=actor,
        action="invoice.created",
        entity_type="invoice",
        entity_id=str(invoice.id),
        after_obj=invoice,
    )
    db.commit()
    db.refresh(invoice)
    logger.info(
        "Invoice %s committed for odontogram %s (%s lines, total %s)",
        invoice.invoice_number,
        odontogram_id,
        len(selected_ids),
        invoice.total,
    )
    return invoice


def get_invoice_or_404(db: Session, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound("Invoice not found")
    return invoice


def lock_invoice(db: Session, invoice_id: int) -> Invoice:
    """Load the invoice row with a write lock held until commit/rollback."""
    try:
        invoice = db.scalar(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update(of=Invoice)
            .execution_options(populate_existing=True)
        )
    except OperationalError as exc:
        # lock_timeout expired while another session held the row.
        db.rollback()
        logger.warning("Timed out waiting for lock on invoice %s", invoice_id)
        raise ConcurrentModification("Invoice is being updated by another session") from exc
    if not invoice:
        raise NotFound("Invoice not found")
    return invoice


def list_invoices(
    db: Session,
    *,
    patient_id: int | None = None,
    odontogram_id: int | None = None,
    status: InvoiceStatus | None = None,
    overdue: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Invoice]:
    stmt = select(Invoice)
    if patient_id is not None:
        stmt = stmt.where(Invoice.patient_id == patient_id)
    if odontogram_id is not None:
        stmt = stmt.where(Invoice.odontogram_id == odontogram_id)
    if status is not None:
        stmt = stmt.where(Invoice.status == status)
    if overdue is not None:
        is_overdue = and_(
            Invoice.due_date.is_not(None),
            Invoice.due_date < date.today(),
            Invoice.status.in_(OPEN_STATUSES),
        )
        stmt = stmt.where(is_overdue if overdue else not_(is_overdue))
    stmt = stmt.order_by(Invoice.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt))


def issue_invoice(
    db: Session, *, invoice_id: int, actor: User, issue_date: date | None = None
) -> Invoice:
    invoice = lock_invoice(db, invoice_id)
    if invoice.status != InvoiceStatus.draft:
        raise InvalidState(f"Only draft invoices can be issued (status is {invoice.status.value})")
    issued_date = issue_date or date.today()
    _check_due_date(invoice.due_date, issued_date)
    invoice.status = InvoiceStatus.paid if invoice.total == ZERO else InvoiceStatus.issued
    invoice.issued_date = issued_date
    invoice.updated_by_user_id = actor.id
    log_event(
        db,
        actor=actor,
        action="invoice.issued",
        entity_type="invoice",
        entity_id=str(invoice.id),
        after_obj=invoice,
    )
    db.commit()
    db.refresh(invoice)
    return invoice
