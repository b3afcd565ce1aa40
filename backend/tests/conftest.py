import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-ledger-suite-0123456789"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "ChangeMe123!"
os.environ.pop("TAX_SERVICE_URL", None)
os.environ.pop("CATALOG_SERVICE_URL", None)

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from dental_ledger.core.security import create_access_token, hash_password
from dental_ledger.core.settings import settings
from dental_ledger.db.session import SessionLocal, engine
from dental_ledger.deps import get_tax_configuration
from dental_ledger.main import app
from dental_ledger.models import Base
from dental_ledger.models.treatment import Treatment, TreatmentCategory
from dental_ledger.models.user import Role, User
from dental_ledger.services.tax import StaticTaxConfiguration

TAX_RATE = Decimal("0.15")

CATALOG = [
    ("D101", "Composite filling", TreatmentCategory.restorative, "500.00", False),
    ("D110", "Root canal", TreatmentCategory.endodontics, "850.00", False),
    ("D120", "Porcelain crown", TreatmentCategory.prosthodontics, "1200.00", False),
    ("D900", "Full mouth cleaning", TreatmentCategory.preventive, "200.00", True),
    ("D910", "Panoramic x-ray", TreatmentCategory.diagnostic, "120.00", True),
]


@pytest.fixture(scope="session")
def admin_credentials():
    return str(settings.admin_email), settings.admin_password


@pytest.fixture(scope="session")
def password_hash(admin_credentials):
    return hash_password(admin_credentials[1])


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_tax_configuration] = lambda: StaticTaxConfiguration(
        {"default": TAX_RATE}
    )
    yield
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _add_user(session, *, email: str, full_name: str, role: Role, password_hash: str) -> User:
    now = datetime.now(timezone.utc)
    user = User(
        email=email,
        full_name=full_name,
        role=role,
        is_active=True,
        hashed_password=password_hash,
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session, admin_credentials, password_hash):
    return _add_user(
        db_session,
        email=admin_credentials[0],
        full_name="Admin",
        role=Role.superadmin,
        password_hash=password_hash,
    )


@pytest.fixture
def dentist(db_session, admin_user, password_hash):
    return _add_user(
        db_session,
        email="dentist@example.com",
        full_name="Dr. Ana Ruiz",
        role=Role.dentist,
        password_hash=password_hash,
    )


@pytest.fixture
def receptionist(db_session, admin_user, password_hash):
    return _add_user(
        db_session,
        email="reception@example.com",
        full_name="Front Desk",
        role=Role.reception,
        password_hash=password_hash,
    )


@pytest.fixture
def catalog(db_session, admin_user):
    for code, name, category, price, is_global in CATALOG:
        db_session.add(
            Treatment(
                code=code,
                name=name,
                category=category,
                default_price=Decimal(price),
                is_global=is_global,
                created_by_user_id=admin_user.id,
            )
        )
    db_session.commit()
    return {code: Decimal(price) for code, _, _, price, _ in CATALOG}


def _headers_for(user: User) -> dict[str, str]:
    token = create_access_token(
        subject=str(user.id),
        secret=settings.secret_key,
        alg=settings.jwt_alg,
        expires_minutes=settings.access_token_expire_minutes,
        extra={"role": user.role.value, "email": user.email},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_client():
    return TestClient(app)


@pytest.fixture
def auth_headers(dentist):
    return _headers_for(dentist)


@pytest.fixture
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture
def reception_headers(receptionist):
    return _headers_for(receptionist)


@pytest.fixture
def patient(api_client, auth_headers):
    response = api_client.post(
        "/patients",
        headers=auth_headers,
        json={"first_name": "Paula", "last_name": "Gomez", "date_of_birth": "1988-04-02"},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def odontogram(api_client, auth_headers, patient, dentist):
    response = api_client.post(
        f"/patients/{patient['id']}/odontograms",
        headers=auth_headers,
        json={"doctor_id": dentist.id},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _tooth_id(odontogram: dict, number: int) -> int:
    return next(tooth["id"] for tooth in odontogram["teeth"] if tooth["tooth_number"] == number)


@pytest.fixture
def tooth_id():
    return _tooth_id


@pytest.fixture
def add_treatment(api_client, auth_headers, dentist, catalog):
    def _add(odontogram: dict, code: str, *, tooth: int | None = None, completed: bool = True, **extra):
        target = (
            {"kind": "tooth", "tooth_record_id": _tooth_id(odontogram, tooth)}
            if tooth is not None
            else {"kind": "global"}
        )
        body = {
            "target": target,
            "treatment_code": code,
            "doctor_id": dentist.id,
            "performed_date": "2026-03-02",
            "is_completed": completed,
            **extra,
        }
        response = api_client.post(
            f"/odontograms/{odontogram['id']}/treatments", headers=auth_headers, json=body
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _add
