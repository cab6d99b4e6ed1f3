from pydantic import Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from schemas.common import CamelModel


class CustomerBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    address3: Optional[str] = None
    address4: Optional[str] = None
    credit_term_days: int = Field(0, ge=0)
    credit_limit: Decimal = Field(Decimal("0"), ge=0)
    currency_code: Optional[str] = Field(None, max_length=3)
    is_active: bool = True


class CustomerCreate(CustomerBase):
    code: str = Field(..., min_length=1, max_length=30)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class CustomerUpdate(CamelModel):
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    address3: Optional[str] = None
    address4: Optional[str] = None
    credit_term_days: Optional[int] = Field(None, ge=0)
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    currency_code: Optional[str] = Field(None, max_length=3)
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v is not None else v


class Customer(CustomerBase):
    id: int
    code: str
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None


class NextCode(CamelModel):
    code: str
