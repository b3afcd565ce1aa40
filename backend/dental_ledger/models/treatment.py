from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import Boolean, Enum, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dental_ledger.models.base import AuditMixin, Base


class TreatmentCategory(str, enum.Enum):
    preventive = "preventive"
    restorative = "restorative"
    endodontics = "endodontics"
    periodontics = "periodontics"
    orthodontics = "orthodontics"
    prosthodontics = "prosthodontics"
    oral_surgery = "oral_surgery"
    pediatric = "pediatric"
    cosmetic = "cosmetic"
    diagnostic = "diagnostic"


class Treatment(Base, AuditMixin):
    """Catalog entry. Recorded treatments copy from it; nothing points back."""

    __tablename__ = "treatments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[TreatmentCategory] = mapped_column(
        Enum(TreatmentCategory, name="treatment_category"), nullable=False
    )
    default_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    is_global: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
