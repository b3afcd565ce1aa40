from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import get_current_user, get_treatment_catalog, require_roles
from dental_ledger.models.user import User
from dental_ledger.schemas.odontogram import OdontogramOut, SurfaceCreate, ToothRecordOut, ToothUpdate
from dental_ledger.schemas.tooth_treatment import ToothTreatmentCreate, ToothTreatmentOut
from dental_ledger.services import odontograms as odontogram_service
from dental_ledger.services import tooth_treatments as treatment_service
from dental_ledger.services.catalog import TreatmentCatalog

router = APIRouter(prefix="/odontograms", tags=["odontograms"])

CLINICAL_ROLES = ("dentist", "superadmin")


@router.get("/{odontogram_id}", response_model=OdontogramOut)
def get_odontogram(
    odontogram_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return odontogram_service.get_odontogram_or_404(db, odontogram_id)


@router.put("/teeth/{tooth_record_id}", response_model=ToothRecordOut)
def update_tooth(
    tooth_record_id: int,
    payload: ToothUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLINICAL_ROLES)),
):
    return odontogram_service.update_tooth(
        db,
        tooth_record_id=tooth_record_id,
        condition=payload.condition,
        expected_version=payload.expected_version,
        actor=user,
        notes=payload.notes,
    )


@router.post(
    "/teeth/{tooth_record_id}/surfaces",
    response_model=ToothRecordOut,
    status_code=status.HTTP_201_CREATED,
)
def add_surface(
    tooth_record_id: int,
    payload: SurfaceCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLINICAL_ROLES)),
):
    return odontogram_service.add_surface(
        db,
        tooth_record_id=tooth_record_id,
        surface=payload.surface,
        condition=payload.condition,
        expected_version=payload.expected_version,
        actor=user,
        notes=payload.notes,
        supersede=payload.supersede,
    )


@router.get("/teeth/{tooth_record_id}/treatments", response_model=list[ToothTreatmentOut])
def list_tooth_treatments(
    tooth_record_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return treatment_service.list_for_tooth(db, tooth_record_id)


@router.post(
    "/{odontogram_id}/treatments",
    response_model=ToothTreatmentOut,
    status_code=status.HTTP_201_CREATED,
)
def add_treatment(
    odontogram_id: int,
    payload: ToothTreatmentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CLINICAL_ROLES)),
    catalog: TreatmentCatalog = Depends(get_treatment_catalog),
):
    return treatment_service.add_treatment(
        db,
        odontogram_id=odontogram_id,
        target=payload.target.to_target(),
        treatment_code=payload.treatment_code,
        doctor_id=payload.doctor_id,
        performed_date=payload.performed_date,
        actor=user,
        catalog=catalog,
        price=payload.price,
        is_completed=payload.is_completed,
        notes=payload.notes,
        surfaces_affected=payload.surfaces_affected,
    )


@router.get("/{odontogram_id}/treatments", response_model=list[ToothTreatmentOut])
def list_treatments(
    odontogram_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return treatment_service.list_for_odontogram(db, odontogram_id)
