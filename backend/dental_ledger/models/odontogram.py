from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dental_ledger.models.base import AuditMixin, Base


class ToothType(str, enum.Enum):
    incisor = "incisor"
    canine = "canine"
    premolar = "premolar"
    molar = "molar"


class ToothCondition(str, enum.Enum):
    healthy = "healthy"
    caries = "caries"
    filled = "filled"
    crowned = "crowned"
    missing = "missing"
    root_canal = "root_canal"
    extracted = "extracted"
    bridge = "bridge"
    implant = "implant"
    fracture = "fracture"
    sealant = "sealant"
    prosthesis = "prosthesis"


ABSENT_CONDITIONS = frozenset({ToothCondition.missing, ToothCondition.extracted})


class ToothSurface(str, enum.Enum):
    mesial = "mesial"
    distal = "distal"
    buccal = "buccal"
    lingual = "lingual"
    occlusal = "occlusal"


class Odontogram(Base, AuditMixin):
    __tablename__ = "odontograms"
    __table_args__ = (
        Index(
            "uq_odontograms_current_patient",
            "patient_id",
            unique=True,
            postgresql_where=text("is_current"),
            sqlite_where=text("is_current = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    examination_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    patient = relationship("Patient", back_populates="odontograms")
    doctor = relationship("User", foreign_keys=[doctor_id])
    teeth = relationship(
        "ToothRecord",
        back_populates="odontogram",
        cascade="all, delete-orphan",
        order_by="ToothRecord.tooth_number",
        lazy="selectin",
    )

    @property
    def patient_name(self) -> str | None:
        return self.patient.full_name if self.patient else None


class ToothRecord(Base):
    __tablename__ = "tooth_records"
    __table_args__ = (
        UniqueConstraint("odontogram_id", "tooth_number"),
        CheckConstraint("tooth_number BETWEEN 1 AND 32", name="ck_tooth_records_number_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    odontogram_id: Mapped[int] = mapped_column(ForeignKey("odontograms.id"), nullable=False, index=True)
    tooth_number: Mapped[int] = mapped_column(Integer, nullable=False)
    tooth_type: Mapped[ToothType] = mapped_column(Enum(ToothType, name="tooth_type"), nullable=False)
    condition: Mapped[ToothCondition] = mapped_column(
        Enum(ToothCondition, name="tooth_condition"),
        nullable=False,
        default=ToothCondition.healthy,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    odontogram = relationship("Odontogram", back_populates="teeth")
    surfaces = relationship(
        "ToothSurfaceRecord",
        back_populates="tooth",
        cascade="all, delete-orphan",
        order_by="ToothSurfaceRecord.id",
        lazy="selectin",
    )

    @property
    def is_present(self) -> bool:
        return self.condition not in ABSENT_CONDITIONS

    @property
    def odontogram_version(self) -> int:
        return self.odontogram.version


class ToothSurfaceRecord(Base):
    __tablename__ = "tooth_surfaces"
    __table_args__ = (UniqueConstraint("tooth_record_id", "surface"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tooth_record_id: Mapped[int] = mapped_column(
        ForeignKey("tooth_records.id"), nullable=False, index=True
    )
    surface: Mapped[ToothSurface] = mapped_column(
        Enum(ToothSurface, name="tooth_surface"), nullable=False
    )
    condition: Mapped[ToothCondition] = mapped_column(
        Enum(ToothCondition, name="tooth_condition"), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    tooth = relationship("ToothRecord", back_populates="surfaces")
