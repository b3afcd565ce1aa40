from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.core.settings import settings
from dental_ledger.db.session import get_db
from dental_ledger.models.user import User
from dental_ledger.services.catalog import DatabaseTreatmentCatalog, HttpTreatmentCatalog, TreatmentCatalog
from dental_ledger.services.tax import HttpTaxConfiguration, StaticTaxConfiguration, TaxConfiguration


def get_current_user(
    db: Session = Depends(get_db), authorization: str | None = Header(default=None)
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_alg])
        sub = payload.get("sub")
        if not sub:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
        user_id = int(sub)
    except (JWTError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db.scalar(select(User).where(User.id == user_id))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user


def require_roles(*roles: str):
    def _inner(user: User = Depends(get_current_user)) -> User:
        if user.role.value not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user

    return _inner


def get_treatment_catalog(db: Session = Depends(get_db)) -> TreatmentCatalog:
    if settings.catalog_service_url:
        return HttpTreatmentCatalog(
            settings.catalog_service_url, timeout=settings.collaborator_timeout_seconds
        )
    return DatabaseTreatmentCatalog(db)


def get_tax_configuration() -> TaxConfiguration:
    if settings.tax_service_url:
        return HttpTaxConfiguration(
            settings.tax_service_url, timeout=settings.collaborator_timeout_seconds
        )
    return StaticTaxConfiguration(settings.tax_rates)
