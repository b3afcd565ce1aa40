import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from dental_ledger.core.errors import LedgerError
from dental_ledger.core.settings import settings, validate_settings
from dental_ledger.db.session import SessionLocal, engine
from dental_ledger.models import Base
from dental_ledger.routers.auth import router as auth_router
from dental_ledger.routers.invoices import router as invoices_router
from dental_ledger.routers.odontograms import router as odontograms_router
from dental_ledger.routers.patients import router as patients_router
from dental_ledger.routers.tooth_treatments import router as tooth_treatments_router
from dental_ledger.routers.treatments import router as treatments_router
from dental_ledger.services.users import seed_initial_admin

app = FastAPI(title="Dental Ledger API", version="0.1.0")
logger = logging.getLogger("dental_ledger.startup")


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.retryable:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    payload = {
        "detail": jsonable_encoder(exc.errors()),
        "code": "ValidationError",
        "retryable": False,
    }
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)

    admin_email = str(settings.admin_email)
    admin_password = settings.admin_password.strip()
    db: Session = SessionLocal()
    try:
        created = seed_initial_admin(db, email=admin_email, password=admin_password)
        if created:
            logger.info("Initial admin created for %s.", admin_email)
        else:
            logger.info("Initial admin not created (users already exist).")
    finally:
        db.close()


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(patients_router)
app.include_router(treatments_router)
app.include_router(odontograms_router)
app.include_router(tooth_treatments_router)
app.include_router(invoices_router)
