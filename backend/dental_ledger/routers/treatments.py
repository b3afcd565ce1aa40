from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import get_current_user, require_roles
from dental_ledger.models.treatment import Treatment
from dental_ledger.models.user import User
from dental_ledger.schemas.treatment import TreatmentCreate, TreatmentOut, TreatmentUpdate
from dental_ledger.services.audit import log_event, snapshot_model

router = APIRouter(prefix="/treatments", tags=["treatments"])


@router.get("", response_model=list[TreatmentOut])
def list_treatments(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
    include_inactive: bool = Query(default=False),
):
    stmt = select(Treatment).order_by(Treatment.code)
    if not include_inactive:
        stmt = stmt.where(Treatment.is_active.is_(True))
    return list(db.scalars(stmt))


@router.post("", response_model=TreatmentOut, status_code=status.HTTP_201_CREATED)
def create_treatment(
    payload: TreatmentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("superadmin")),
):
    code = payload.code.strip().upper()
    if db.scalar(select(Treatment.id).where(Treatment.code == code)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Treatment code already exists")
    treatment = Treatment(
        **payload.model_dump(exclude={"code"}),
        code=code,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    db.add(treatment)
    db.flush()
    log_event(
        db,
        actor=user,
        action="treatment_catalog.created",
        entity_type="treatment",
        entity_id=str(treatment.id),
        after_obj=treatment,
    )
    db.commit()
    db.refresh(treatment)
    return treatment


@router.patch("/{treatment_id}", response_model=TreatmentOut)
def update_treatment(
    treatment_id: int,
    payload: TreatmentUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("superadmin")),
):
    treatment = db.get(Treatment, treatment_id)
    if not treatment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Treatment not found")

    before_data = snapshot_model(treatment)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in {"name", "category", "default_price", "is_global", "is_active"}:
            continue
        setattr(treatment, field, value)
    treatment.updated_by_user_id = user.id
    log_event(
        db,
        actor=user,
        action="treatment_catalog.updated",
        entity_type="treatment",
        entity_id=str(treatment.id),
        before_data=before_data,
        after_obj=treatment,
    )
    db.commit()
    db.refresh(treatment)
    return treatment
