from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dental_ledger.models.invoice import InvoiceStatus, PaymentMethod


class PreviewLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    treatment_record_id: int
    treatment_code: str
    treatment_name: str
    tooth_number: Optional[int] = None
    is_global: bool
    doctor_name: str
    performed_date: date
    price: Decimal


class InvoicePreviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    odontogram_id: int
    patient_id: int
    patient_name: Optional[str] = None
    tooth_treatments: list[PreviewLineOut]
    global_treatments: list[PreviewLineOut]
    subtotal: Decimal
    discount: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal


class InvoiceCommit(BaseModel):
    odontogram_id: int
    treatment_record_ids: Optional[list[int]] = None
    discount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    discount_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100, max_digits=5, decimal_places=2)
    notes: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    as_draft: bool = False


class InvoiceIssue(BaseModel):
    issue_date: Optional[date] = None


class InvoiceCancel(BaseModel):
    reason: str


class InvoiceLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    treatment_record_id: int
    treatment_code: str
    description: str
    tooth_number: Optional[int] = None
    is_global: bool
    price: Decimal


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    method: PaymentMethod
    paid_at: Optional[datetime] = None
    reference: Optional[str] = Field(default=None, max_length=120)
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    amount: Decimal
    method: PaymentMethod
    paid_at: datetime
    reference: Optional[str] = None
    notes: Optional[str] = None
    received_by_user_id: int


class InvoiceSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    patient_id: int
    patient_name: Optional[str] = None
    odontogram_id: int
    issued_date: Optional[date] = None
    due_date: Optional[date] = None
    status: InvoiceStatus
    subtotal: Decimal
    discount: Decimal
    discount_percentage: Optional[Decimal] = None
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    amount_paid: Decimal
    balance: Decimal
    is_overdue: bool
    created_at: datetime
    updated_at: datetime


class InvoiceOut(InvoiceSummaryOut):
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_by_user_id: int
    updated_by_user_id: Optional[int] = None
    lines: list[InvoiceLineOut]
    payments: list[PaymentOut]


class DailyRevenueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    invoices: int
    total: Decimal


class RevenueReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_invoices: int
    total_revenue: Decimal
    total_paid: Decimal
    total_pending: Decimal
    total_cancelled: Decimal
    payment_method_breakdown: dict[str, Decimal]
    daily_revenue: list[DailyRevenueOut]
