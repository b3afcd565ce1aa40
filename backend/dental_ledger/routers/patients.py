from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import get_current_user
from dental_ledger.models.patient import Patient
from dental_ledger.models.user import User
from dental_ledger.schemas.odontogram import OdontogramCreate, OdontogramOut, OdontogramSummaryOut
from dental_ledger.schemas.patient import PatientCreate, PatientOut
from dental_ledger.services import odontograms as odontogram_service
from dental_ledger.services.audit import log_event

router = APIRouter(prefix="/patients", tags=["patients"])


@router.post("", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    patient = Patient(
        **payload.model_dump(),
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    db.add(patient)
    db.flush()
    log_event(
        db,
        actor=user,
        action="patient.created",
        entity_type="patient",
        entity_id=str(patient.id),
        after_obj=patient,
    )
    db.commit()
    db.refresh(patient)
    return patient


@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return odontogram_service.get_patient_or_404(db, patient_id)


@router.post(
    "/{patient_id}/odontograms", response_model=OdontogramOut, status_code=status.HTTP_201_CREATED
)
def create_odontogram(
    patient_id: int,
    payload: OdontogramCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return odontogram_service.create_odontogram(
        db,
        patient_id=patient_id,
        actor=user,
        examination_date=payload.examination_date,
        doctor_id=payload.doctor_id,
        notes=payload.notes,
        supersede_current=payload.supersede_current,
    )


@router.get("/{patient_id}/odontograms", response_model=list[OdontogramSummaryOut])
def list_odontograms(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return odontogram_service.list_for_patient(db, patient_id)


@router.get("/{patient_id}/odontograms/current", response_model=OdontogramOut)
def get_current_odontogram(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return odontogram_service.current_for_patient(db, patient_id)
