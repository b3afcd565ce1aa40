from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from dental_ledger.core.errors import (
    InvalidState,
    InvalidTooth,
    LedgerValidationError,
    NotFound,
    UnknownTreatmentCode,
)
from dental_ledger.models.odontogram import ToothRecord
from dental_ledger.models.tooth_treatment import ToothSpecific, ToothTreatmentRecord, TreatmentTarget
from dental_ledger.models.user import User
from dental_ledger.services.audit import log_event, snapshot_model
from dental_ledger.services.catalog import TreatmentCatalog
from dental_ledger.services.odontograms import get_odontogram_or_404, get_tooth_or_404
from dental_ledger.services.pricing import round_money
from dental_ledger.services.users import resolve_doctor

logger = logging.getLogger("dental_ledger.treatments")

EDITABLE_FIELDS = ("price", "performed_date", "notes", "surfaces_affected")


def get_treatment_or_404(db: Session, record_id: int) -> ToothTreatmentRecord:
    record = db.get(ToothTreatmentRecord, record_id)
    if not record:
        raise NotFound("Treatment record not found")
    return record


def _validate_price(price: Decimal | None) -> None:
    if price is not None and price < 0:
        raise LedgerValidationError("Price cannot be negative")


def add_treatment(
    db: Session,
    *,
    odontogram_id: int,
    target: TreatmentTarget,
    treatment_code: str,
    doctor_id: int,
    performed_date: date,
    actor: User,
    catalog: TreatmentCatalog,
    price: Decimal | None = None,
    is_completed: bool = False,
    notes: str | None = None,
    surfaces_affected: str | None = None,
) -> ToothTreatmentRecord:
    odontogram = get_odontogram_or_404(db, odontogram_id)
    if not odontogram.is_current:
        raise InvalidState("Treatments cannot be added to a superseded odontogram")

    tooth_record_id = None
    if isinstance(target, ToothSpecific):
        tooth = db.get(ToothRecord, target.tooth_record_id)
        if tooth is None or tooth.odontogram_id != odontogram.id:
            raise InvalidTooth()
        tooth_record_id = tooth.id

    _validate_price(price)
    doctor = resolve_doctor(db, doctor_id)
    entry = catalog.lookup(treatment_code)
    if entry is None:
        raise UnknownTreatmentCode(f"Unknown treatment code {treatment_code!r}")

    record = ToothTreatmentRecord(
        odontogram_id=odontogram.id,
        tooth_record_id=tooth_record_id,
        treatment_code=entry.code,
        treatment_name=entry.name,
        treatment_category=entry.category,
        doctor_id=doctor.id,
        doctor_name=doctor.full_name or doctor.email,
        performed_date=performed_date,
        price=round_money(price if price is not None else entry.default_price),
        is_completed=is_completed,
        completed_at=datetime.now(timezone.utc) if is_completed else None,
        notes=notes,
        surfaces_affected=surfaces_affected,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
    )
    db.add(record)
    db.flush()
    log_event(
        db,
        actor=actor,
        action="treatment.recorded",
        entity_type="tooth_treatment",
        entity_id=str(record.id),
        after_obj=record,
    )
    db.commit()
    db.refresh(record)
    return record


def mark_completed(db: Session, *, record_id: int, actor: User) -> ToothTreatmentRecord:
    record = get_treatment_or_404(db, record_id)
    if record.is_completed:
        return record
    record.is_completed = True
    record.completed_at = datetime.now(timezone.utc)
    record.updated_by_user_id = actor.id
    log_event(
        db,
        actor=actor,
        action="treatment.completed",
        entity_type="tooth_treatment",
        entity_id=str(record.id),
        after_data={"is_completed": True},
    )
    db.commit()
    db.refresh(record)
    return record


def update_treatment(
    db: Session, *, record_id: int, actor: User, changes: dict
) -> ToothTreatmentRecord:
    record = get_treatment_or_404(db, record_id)
    if record.is_invoiced:
        raise InvalidState("Invoiced treatments cannot be edited")

    values = {key: changes[key] for key in EDITABLE_FIELDS if key in changes}
    if "price" in values:
        if values["price"] is None:
            raise LedgerValidationError("Price is required")
        _validate_price(values["price"])
        values["price"] = round_money(values["price"])
    if "performed_date" in values and values["performed_date"] is None:
        raise LedgerValidationError("Performed date is required")
    if not values:
        return record

    before_data = snapshot_model(record)
    result = db.execute(
        update(ToothTreatmentRecord)
        .where(ToothTreatmentRecord.id == record.id, ToothTreatmentRecord.invoice_id.is_(None))
        .values(**values, updated_by_user_id=actor.id, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidState("Treatment was invoiced by another session")
    db.expire(record)
    log_event(
        db,
        actor=actor,
        action="treatment.updated",
        entity_type="tooth_treatment",
        entity_id=str(record.id),
        before_data=before_data,
        after_obj=record,
    )
    db.commit()
    db.refresh(record)
    return record


def delete_treatment(db: Session, *, record_id: int, actor: User) -> None:
    record = get_treatment_or_404(db, record_id)
    if record.is_invoiced:
        raise InvalidState("Invoiced treatments cannot be deleted")
    if record.is_completed:
        raise InvalidState("Completed treatments cannot be deleted")

    before_data = snapshot_model(record)
    result = db.execute(
        delete(ToothTreatmentRecord)
        .where(
            ToothTreatmentRecord.id == record.id,
            ToothTreatmentRecord.invoice_id.is_(None),
            ToothTreatmentRecord.is_completed.is_(False),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidState("Treatment changed state while being deleted")
    log_event(
        db,
        actor=actor,
        action="treatment.deleted",
        entity_type="tooth_treatment",
        entity_id=str(record_id),
        before_data=before_data,
    )
    db.commit()


def list_for_odontogram(db: Session, odontogram_id: int) -> list[ToothTreatmentRecord]:
    get_odontogram_or_404(db, odontogram_id)
    stmt = (
        select(ToothTreatmentRecord)
        .where(ToothTreatmentRecord.odontogram_id == odontogram_id)
        .order_by(ToothTreatmentRecord.performed_date.desc(), ToothTreatmentRecord.id.desc())
    )
    return list(db.scalars(stmt))


def list_for_tooth(db: Session, tooth_record_id: int) -> list[ToothTreatmentRecord]:
    get_tooth_or_404(db, tooth_record_id)
    stmt = (
        select(ToothTreatmentRecord)
        .where(ToothTreatmentRecord.tooth_record_id == tooth_record_id)
        .order_by(ToothTreatmentRecord.performed_date.desc(), ToothTreatmentRecord.id.desc())
    )
    return list(db.scalars(stmt))
