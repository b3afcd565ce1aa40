from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import get_current_user, require_roles
from dental_ledger.models.user import User
from dental_ledger.schemas.tooth_treatment import ToothTreatmentOut, ToothTreatmentUpdate
from dental_ledger.services import tooth_treatments as treatment_service

router = APIRouter(prefix="/tooth-treatments", tags=["tooth-treatments"])


@router.get("/{record_id}", response_model=ToothTreatmentOut)
def get_treatment(
    record_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return treatment_service.get_treatment_or_404(db, record_id)


@router.patch("/{record_id}", response_model=ToothTreatmentOut)
def update_treatment(
    record_id: int,
    payload: ToothTreatmentUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("dentist", "superadmin")),
):
    return treatment_service.update_treatment(
        db, record_id=record_id, actor=user, changes=payload.model_dump(exclude_unset=True)
    )


@router.post("/{record_id}/complete", response_model=ToothTreatmentOut)
def complete_treatment(
    record_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("dentist", "superadmin")),
):
    return treatment_service.mark_completed(db, record_id=record_id, actor=user)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_treatment(
    record_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("dentist", "superadmin")),
):
    treatment_service.delete_treatment(db, record_id=record_id, actor=user)
    return None
