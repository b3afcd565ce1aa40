from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dental_ledger.core.errors import (
    ConcurrentModification,
    DuplicateActiveOdontogram,
    DuplicateSurface,
    InvalidState,
    LedgerValidationError,
    NotFound,
)
from dental_ledger.models.odontogram import (
    ABSENT_CONDITIONS,
    Odontogram,
    ToothCondition,
    ToothRecord,
    ToothSurface,
    ToothSurfaceRecord,
)
from dental_ledger.models.patient import Patient
from dental_ledger.models.user import User
from dental_ledger.services.audit import log_event, snapshot_model
from dental_ledger.services.teeth import TOOTH_NUMBERS, tooth_type_for
from dental_ledger.services.users import resolve_doctor

logger = logging.getLogger("dental_ledger.odontograms")


def get_patient_or_404(db: Session, patient_id: int) -> Patient:
    patient = db.get(Patient, patient_id)
    if not patient:
        raise NotFound("Patient not found")
    return patient


def get_odontogram_or_404(db: Session, odontogram_id: int) -> Odontogram:
    odontogram = db.get(Odontogram, odontogram_id)
    if not odontogram:
        raise NotFound("Odontogram not found")
    return odontogram


def get_tooth_or_404(db: Session, tooth_record_id: int) -> ToothRecord:
    tooth = db.get(ToothRecord, tooth_record_id)
    if not tooth:
        raise NotFound("Tooth record not found")
    return tooth


def list_for_patient(db: Session, patient_id: int) -> list[Odontogram]:
    get_patient_or_404(db, patient_id)
    stmt = (
        select(Odontogram)
        .where(Odontogram.patient_id == patient_id)
        .order_by(Odontogram.is_current.desc(), Odontogram.id.desc())
    )
    return list(db.scalars(stmt))


def current_for_patient(db: Session, patient_id: int) -> Odontogram:
    get_patient_or_404(db, patient_id)
    odontogram = db.scalar(
        select(Odontogram).where(Odontogram.patient_id == patient_id, Odontogram.is_current.is_(True))
    )
    if not odontogram:
        raise NotFound("Patient has no current odontogram")
    return odontogram


def create_odontogram(
    db: Session,
    *,
    patient_id: int,
    actor: User,
    examination_date: date | None = None,
    doctor_id: int | None = None,
    notes: str | None = None,
    supersede_current: bool = False,
) -> Odontogram:
    get_patient_or_404(db, patient_id)
    if doctor_id is not None:
        resolve_doctor(db, doctor_id)

    current = db.scalar(
        select(Odontogram).where(Odontogram.patient_id == patient_id, Odontogram.is_current.is_(True))
    )
    if current is not None:
        if not supersede_current:
            raise DuplicateActiveOdontogram()
        result = db.execute(
            update(Odontogram)
            .where(Odontogram.id == current.id, Odontogram.is_current.is_(True))
            .values(
                is_current=False,
                superseded_at=datetime.now(timezone.utc),
                version=Odontogram.version + 1,
                updated_by_user_id=actor.id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            raise ConcurrentModification("Current odontogram changed while superseding it")

    odontogram = Odontogram(
        patient_id=patient_id,
        doctor_id=doctor_id,
        examination_date=examination_date or date.today(),
        notes=notes,
        is_current=True,
        version=1,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
        teeth=[
            ToothRecord(
                tooth_number=number,
                tooth_type=tooth_type_for(number),
                condition=ToothCondition.healthy,
            )
            for number in TOOTH_NUMBERS
        ],
    )
    db.add(odontogram)
    try:
        db.flush()
    except IntegrityError:
        # Another session created a current chart for this patient first.
        db.rollback()
        raise DuplicateActiveOdontogram() from None

    if current is not None:
        log_event(
            db,
            actor=actor,
            action="odontogram.superseded",
            entity_type="odontogram",
            entity_id=str(current.id),
            after_data={"superseded_by": odontogram.id},
        )
    log_event(
        db,
        actor=actor,
        action="odontogram.created",
        entity_type="odontogram",
        entity_id=str(odontogram.id),
        after_data={"patient_id": patient_id, "teeth": len(TOOTH_NUMBERS)},
    )
    db.commit()
    db.refresh(odontogram)
    logger.info("Odontogram %s created for patient %s", odontogram.id, patient_id)
    return odontogram


def _ensure_mutable(odontogram: Odontogram) -> None:
    if not odontogram.is_current:
        raise InvalidState("Superseded odontograms are read-only")


def _claim_version(db: Session, odontogram: Odontogram, expected_version: int, actor: User) -> None:
    """Bump the odontogram version iff it still equals ``expected_version``."""
    result = db.execute(
        update(Odontogram)
        .where(
            Odontogram.id == odontogram.id,
            Odontogram.version == expected_version,
            Odontogram.is_current.is_(True),
        )
        .values(
            version=Odontogram.version + 1,
            updated_at=datetime.now(timezone.utc),
            updated_by_user_id=actor.id,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.warning(
            "Stale odontogram version for %s (expected %s)", odontogram.id, expected_version
        )
        raise ConcurrentModification()


def update_tooth(
    db: Session,
    *,
    tooth_record_id: int,
    condition: ToothCondition,
    expected_version: int,
    actor: User,
    notes: str | None = None,
) -> ToothRecord:
    tooth = get_tooth_or_404(db, tooth_record_id)
    _ensure_mutable(tooth.odontogram)
    if tooth.condition in ABSENT_CONDITIONS and condition != tooth.condition:
        raise InvalidState(f"Tooth {tooth.tooth_number} is {tooth.condition.value}")

    before_data = snapshot_model(tooth)
    _claim_version(db, tooth.odontogram, expected_version, actor)
    tooth.condition = condition
    if notes is not None:
        tooth.notes = notes
    log_event(
        db,
        actor=actor,
        action="odontogram.tooth_updated",
        entity_type="tooth_record",
        entity_id=str(tooth.id),
        before_data=before_data,
        after_obj=tooth,
    )
    db.commit()
    db.refresh(tooth)
    return tooth


def add_surface(
    db: Session,
    *,
    tooth_record_id: int,
    surface: ToothSurface,
    condition: ToothCondition,
    expected_version: int,
    actor: User,
    notes: str | None = None,
    supersede: bool = False,
) -> ToothRecord:
    tooth = get_tooth_or_404(db, tooth_record_id)
    _ensure_mutable(tooth.odontogram)
    if tooth.condition in ABSENT_CONDITIONS:
        raise InvalidState(f"Tooth {tooth.tooth_number} is {tooth.condition.value}")
    if condition in ABSENT_CONDITIONS:
        raise LedgerValidationError(f"'{condition.value}' applies to whole teeth, not surfaces")

    existing = next((item for item in tooth.surfaces if item.surface == surface), None)
    if existing is not None and existing.condition != ToothCondition.healthy and not supersede:
        raise DuplicateSurface(
            f"{surface.value} surface of tooth {tooth.tooth_number} is already {existing.condition.value}"
        )

    _claim_version(db, tooth.odontogram, expected_version, actor)
    if existing is None:
        record = ToothSurfaceRecord(surface=surface, condition=condition, notes=notes)
        tooth.surfaces.append(record)
        db.flush()
        action = "odontogram.surface_added"
        before_data = None
    else:
        record = existing
        before_data = snapshot_model(existing)
        record.condition = condition
        if notes is not None:
            record.notes = notes
        db.flush()
        action = "odontogram.surface_superseded"
    log_event(
        db,
        actor=actor,
        action=action,
        entity_type="tooth_surface",
        entity_id=str(record.id),
        before_data=before_data,
        after_obj=record,
    )
    db.commit()
    db.refresh(tooth)
    return tooth
