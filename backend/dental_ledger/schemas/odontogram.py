from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dental_ledger.models.odontogram import ToothCondition, ToothSurface, ToothType


class OdontogramCreate(BaseModel):
    examination_date: Optional[date] = None
    doctor_id: Optional[int] = None
    notes: Optional[str] = None
    supersede_current: bool = False


class ToothUpdate(BaseModel):
    condition: ToothCondition
    expected_version: int = Field(ge=1)
    notes: Optional[str] = None


class SurfaceCreate(BaseModel):
    surface: ToothSurface
    condition: ToothCondition
    expected_version: int = Field(ge=1)
    notes: Optional[str] = None
    supersede: bool = False


class ToothSurfaceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    surface: ToothSurface
    condition: ToothCondition
    notes: Optional[str] = None
    updated_at: datetime


class ToothRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    odontogram_id: int
    tooth_number: int
    tooth_type: ToothType
    condition: ToothCondition
    notes: Optional[str] = None
    is_present: bool
    odontogram_version: int
    surfaces: list[ToothSurfaceOut]


class OdontogramSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: Optional[int] = None
    examination_date: date
    notes: Optional[str] = None
    is_current: bool
    superseded_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime


class OdontogramOut(OdontogramSummaryOut):
    teeth: list[ToothRecordOut]
