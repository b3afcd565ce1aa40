import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dental_ledger.core.security import create_access_token, verify_password
from dental_ledger.core.settings import settings
from dental_ledger.db.session import get_db
from dental_ledger.schemas.auth import LoginRequest, Token
from dental_ledger.services.users import get_user_by_email

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("dental_ledger.auth")


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = get_user_by_email(db, payload.email)
    if user and not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    if not user or not verify_password(payload.password, user.hashed_password):
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_access_token(
        subject=str(user.id),
        secret=settings.secret_key,
        alg=settings.jwt_alg,
        expires_minutes=settings.access_token_expire_minutes,
        extra={"role": user.role.value, "email": user.email},
    )
    return Token(access_token=token)
