from dental_ledger.models.base import Base
from dental_ledger.models.user import Role, User
from dental_ledger.models.audit_log import AuditLog
from dental_ledger.models.patient import Patient
from dental_ledger.models.treatment import Treatment, TreatmentCategory
from dental_ledger.models.odontogram import (
    Odontogram,
    ToothCondition,
    ToothRecord,
    ToothSurface,
    ToothSurfaceRecord,
    ToothType,
)
from dental_ledger.models.tooth_treatment import (
    GlobalTarget,
    ToothSpecific,
    ToothTreatmentRecord,
    TreatmentTarget,
)
from dental_ledger.models.invoice import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)

__all__ = [
    "Base",
    "Role",
    "User",
    "AuditLog",
    "Patient",
    "Treatment",
    "TreatmentCategory",
    "Odontogram",
    "ToothCondition",
    "ToothRecord",
    "ToothSurface",
    "ToothSurfaceRecord",
    "ToothType",
    "GlobalTarget",
    "ToothSpecific",
    "ToothTreatmentRecord",
    "TreatmentTarget",
    "Invoice",
    "InvoiceLine",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
]
