from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dental_ledger.models.base import AuditMixin, Base

ZERO = Decimal("0.00")


class InvoiceStatus(str, enum.Enum):
    draft = "draft"
    issued = "issued"
    partially_paid = "partially_paid"
    paid = "paid"
    cancelled = "cancelled"


COMMITTED_STATUSES = (InvoiceStatus.issued, InvoiceStatus.partially_paid, InvoiceStatus.paid)
OPEN_STATUSES = (InvoiceStatus.issued, InvoiceStatus.partially_paid)


class PaymentMethod(str, enum.Enum):
    cash = "cash"
    credit_card = "credit_card"
    debit_card = "debit_card"
    bank_transfer = "bank_transfer"
    check = "check"
    other = "other"


class Invoice(Base, AuditMixin):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    invoice_number: Mapped[str | None] = mapped_column(String(32), unique=True, index=True, nullable=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    odontogram_id: Mapped[int] = mapped_column(ForeignKey("odontograms.id"), nullable=False, index=True)
    issued_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, name="invoice_status"),
        nullable=False,
        default=InvoiceStatus.issued,
        index=True,
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    discount_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False, default=ZERO)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    patient = relationship("Patient", back_populates="invoices")
    lines = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.id",
        lazy="selectin",
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        order_by="Payment.id",
        lazy="selectin",
    )

    @property
    def amount_paid(self) -> Decimal:
        return sum((payment.amount for payment in self.payments or []), ZERO)

    @property
    def balance(self) -> Decimal:
        return max(self.total - self.amount_paid, ZERO)

    def is_overdue_on(self, today: date) -> bool:
        return (
            self.due_date is not None
            and self.status in OPEN_STATUSES
            and self.due_date < today
        )

    @property
    def is_overdue(self) -> bool:
        # Derived at read time; overdue is not a stored status.
        return self.is_overdue_on(date.today())

    @property
    def patient_name(self) -> str | None:
        return self.patient.full_name if self.patient else None


class InvoiceLine(Base):
    __tablename__ = "invoice_lines"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    # Not unique: a record released by a cancellation can be billed again.
    treatment_record_id: Mapped[int] = mapped_column(
        ForeignKey("tooth_treatment_records.id"), nullable=False, index=True
    )
    treatment_code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    tooth_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_global: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="lines")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_payments_amount_positive"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method"), nullable=False
    )
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(120), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    received_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    invoice = relationship("Invoice", back_populates="payments")
