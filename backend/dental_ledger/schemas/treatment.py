from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dental_ledger.models.treatment import TreatmentCategory


class TreatmentBase(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    category: TreatmentCategory
    default_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    is_global: bool = False
    is_active: bool = True


class TreatmentCreate(TreatmentBase):
    pass


class TreatmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[TreatmentCategory] = None
    default_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    is_global: Optional[bool] = None
    is_active: Optional[bool] = None


class TreatmentOut(TreatmentBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    updated_at: datetime
    created_by_user_id: int
    updated_by_user_id: Optional[int] = None
