from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from dental_ledger.models.tooth_treatment import GlobalTarget, ToothSpecific, TreatmentTarget
from dental_ledger.models.treatment import TreatmentCategory


class ToothTargetIn(BaseModel):
    kind: Literal["tooth"]
    tooth_record_id: int

    def to_target(self) -> TreatmentTarget:
        return ToothSpecific(self.tooth_record_id)


class GlobalTargetIn(BaseModel):
    kind: Literal["global"]

    def to_target(self) -> TreatmentTarget:
        return GlobalTarget()


TargetIn = Annotated[Union[ToothTargetIn, GlobalTargetIn], Field(discriminator="kind")]


class ToothTreatmentCreate(BaseModel):
    target: TargetIn
    treatment_code: str = Field(min_length=1, max_length=50)
    doctor_id: int
    performed_date: date
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    is_completed: bool = False
    notes: Optional[str] = None
    surfaces_affected: Optional[str] = Field(default=None, max_length=64)


class ToothTreatmentUpdate(BaseModel):
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    performed_date: Optional[date] = None
    notes: Optional[str] = None
    surfaces_affected: Optional[str] = Field(default=None, max_length=64)


class ToothTreatmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    odontogram_id: int
    tooth_record_id: Optional[int] = None
    tooth_number: Optional[int] = None
    is_global: bool
    treatment_code: str
    treatment_name: str
    treatment_category: TreatmentCategory
    doctor_id: int
    doctor_name: str
    performed_date: date
    price: Decimal
    is_completed: bool
    completed_at: Optional[datetime] = None
    invoice_id: Optional[int] = None
    notes: Optional[str] = None
    surfaces_affected: Optional[str] = None
    created_at: datetime
    updated_at: datetime
