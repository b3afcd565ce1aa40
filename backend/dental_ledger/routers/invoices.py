from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from dental_ledger.core.settings import settings
from dental_ledger.db.session import get_db
from dental_ledger.deps import get_current_user, get_tax_configuration
from dental_ledger.models.invoice import InvoiceStatus
from dental_ledger.models.user import User
from dental_ledger.schemas.invoice import (
    InvoiceCancel,
    InvoiceCommit,
    InvoiceIssue,
    InvoiceOut,
    InvoicePreviewOut,
    InvoiceSummaryOut,
    PaymentCreate,
    RevenueReportOut,
)
from dental_ledger.services import invoicing, payments
from dental_ledger.services.audit import log_event
from dental_ledger.services.pdf import build_invoice_pdf
from dental_ledger.services.revenue import revenue_report
from dental_ledger.services.tax import TaxConfiguration

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("/preview/{odontogram_id}", response_model=InvoicePreviewOut)
def preview_invoice(
    odontogram_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
    tax_config: TaxConfiguration = Depends(get_tax_configuration),
):
    return invoicing.preview_invoice(
        db,
        odontogram_id=odontogram_id,
        tax_config=tax_config,
        jurisdiction=settings.tax_jurisdiction,
    )


@router.get("/revenue", response_model=RevenueReportOut)
def get_revenue(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
):
    return revenue_report(db, start_date=start_date, end_date=end_date)


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def commit_invoice(
    payload: InvoiceCommit,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    tax_config: TaxConfiguration = Depends(get_tax_configuration),
):
    return invoicing.commit_invoice(
        db,
        odontogram_id=payload.odontogram_id,
        actor=user,
        tax_config=tax_config,
        jurisdiction=settings.tax_jurisdiction,
        treatment_record_ids=payload.treatment_record_ids,
        discount=payload.discount,
        notes=payload.notes,
        issue_date=payload.issue_date,
        due_date=payload.due_date,
        discount_percentage=payload.discount_percentage,
        as_draft=payload.as_draft,
    )


@router.get("", response_model=list[InvoiceSummaryOut])
def list_invoices(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
    patient_id: int | None = Query(default=None),
    odontogram_id: int | None = Query(default=None),
    status: InvoiceStatus | None = Query(default=None),
    overdue: bool | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    return invoicing.list_invoices(
        db,
        patient_id=patient_id,
        odontogram_id=odontogram_id,
        status=status,
        overdue=overdue,
        limit=limit,
        offset=offset,
    )


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return invoicing.get_invoice_or_404(db, invoice_id)


@router.post("/{invoice_id}/issue", response_model=InvoiceOut)
def issue_invoice(
    invoice_id: int,
    payload: InvoiceIssue | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return invoicing.issue_invoice(
        db,
        invoice_id=invoice_id,
        actor=user,
        issue_date=payload.issue_date if payload else None,
    )


@router.get("/{invoice_id}/pdf")
def get_invoice_pdf(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invoice = invoicing.get_invoice_or_404(db, invoice_id)
    pdf_bytes = build_invoice_pdf(invoice)
    log_event(
        db,
        actor=user,
        action="invoice.pdf_generated",
        entity_type="invoice",
        entity_id=str(invoice.id),
    )
    db.commit()
    filename = f"{invoice.invoice_number}.pdf"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)


@router.post(
    "/{invoice_id}/payments", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED
)
def register_payment(
    invoice_id: int,
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    payment = payments.register_payment(
        db,
        invoice_id=invoice_id,
        amount=payload.amount,
        method=payload.method,
        actor=user,
        paid_at=payload.paid_at,
        reference=payload.reference,
        notes=payload.notes,
    )
    return payment.invoice


@router.post("/{invoice_id}/cancel", response_model=InvoiceOut)
def cancel_invoice(
    invoice_id: int,
    payload: InvoiceCancel,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return payments.cancel_invoice(db, invoice_id=invoice_id, reason=payload.reason, actor=user)
