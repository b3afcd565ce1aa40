from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dental_ledger.core.errors import LedgerValidationError, NotFound
from dental_ledger.core.security import hash_password
from dental_ledger.models.user import Role, User


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == email.lower().strip()))


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str = "",
    role: Role = Role.reception,
    is_active: bool = True,
) -> User:
    now = datetime.now(timezone.utc)
    user = User(
        email=email.lower().strip(),
        full_name=full_name,
        role=role,
        is_active=is_active,
        hashed_password=hash_password(password),
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def user_count(db: Session) -> int:
    return int(db.scalar(select(func.count(User.id))) or 0)


def seed_initial_admin(db: Session, *, email: str, password: str) -> bool:
    if user_count(db) > 0:
        return False
    create_user(
        db,
        email=email,
        password=password,
        full_name="Admin",
        role=Role.superadmin,
        is_active=True,
    )
    return True


def resolve_doctor(db: Session, doctor_id: int) -> User:
    doctor = db.get(User, doctor_id)
    if not doctor:
        raise NotFound("Doctor not found")
    if not doctor.is_active or doctor.role != Role.dentist:
        raise LedgerValidationError("Doctor must be an active dentist")
    return doctor
