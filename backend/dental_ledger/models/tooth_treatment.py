from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Union

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dental_ledger.models.base import AuditMixin, Base
from dental_ledger.models.treatment import TreatmentCategory


@dataclass(frozen=True)
class ToothSpecific:
    tooth_record_id: int


@dataclass(frozen=True)
class GlobalTarget:
    pass


TreatmentTarget = Union[ToothSpecific, GlobalTarget]


class ToothTreatmentRecord(Base, AuditMixin):
    __tablename__ = "tooth_treatment_records"
    __table_args__ = (CheckConstraint("price >= 0", name="ck_tooth_treatment_records_price"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    odontogram_id: Mapped[int] = mapped_column(ForeignKey("odontograms.id"), nullable=False, index=True)
    # Null means a whole-mouth treatment; see ``target``.
    tooth_record_id: Mapped[int | None] = mapped_column(
        ForeignKey("tooth_records.id"), nullable=True, index=True
    )
    treatment_code: Mapped[str] = mapped_column(String(50), nullable=False)
    treatment_name: Mapped[str] = mapped_column(String(200), nullable=False)
    treatment_category: Mapped[TreatmentCategory] = mapped_column(
        Enum(TreatmentCategory, name="treatment_category"), nullable=False
    )
    doctor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    doctor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    performed_date: Mapped[date] = mapped_column(Date, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invoice_id: Mapped[int | None] = mapped_column(ForeignKey("invoices.id"), nullable=True, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    surfaces_affected: Mapped[str | None] = mapped_column(String(64), nullable=True)

    odontogram = relationship("Odontogram")
    tooth = relationship("ToothRecord", lazy="joined")

    @property
    def target(self) -> TreatmentTarget:
        if self.tooth_record_id is None:
            return GlobalTarget()
        return ToothSpecific(self.tooth_record_id)

    @property
    def is_global(self) -> bool:
        return self.tooth_record_id is None

    @property
    def tooth_number(self) -> int | None:
        return self.tooth.tooth_number if self.tooth is not None else None

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_id is not None
