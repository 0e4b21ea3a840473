import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import Category, EmployeeType, TransactionType


def _enum_value(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    return value


class TransactionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, max_length=64)
    date: dt.date
    amount: Decimal = Field(..., ge=0)
    description: str
    category: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    supplier: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _category_value(cls, value: object) -> object:
        return _enum_value(value)


class EmployeeRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)
    type: EmployeeType
    cost: Decimal = Field(..., ge=0)
    extras: Optional[Decimal] = Field(default=None, ge=0)
    active: bool = True


class SupplierRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)


class FixedExpenseRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)
    default_category: str = Field(..., min_length=1, max_length=100)
    default_amount: Optional[Decimal] = Field(default=None, ge=0)
    is_recurring: bool = False

    @field_validator("default_category", mode="before")
    @classmethod
    def _category_value(cls, value: object) -> object:
        return _enum_value(value)


class TransactionIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    date: dt.date
    amount: Decimal = Field(..., ge=0)
    description: str = Field(..., min_length=1, max_length=500)
    category: str = Field(default=Category.other.value, min_length=1, max_length=100)
    type: TransactionType
    supplier: Optional[str] = Field(default=None, max_length=200)

    @field_validator("category", mode="before")
    @classmethod
    def _category_value(cls, value: object) -> object:
        return _enum_value(value)


class EmployeeIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    name: str = Field(..., min_length=1, max_length=120)
    type: EmployeeType
    cost: Decimal = Field(..., gt=0)
    extras: Optional[Decimal] = Field(default=None, ge=0)
    active: bool = True


class SupplierIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)


class FixedExpenseIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    default_category: str = Field(
        default=Category.alquiler.value, min_length=1, max_length=100
    )
    default_amount: Optional[Decimal] = Field(default=None, ge=0)
    is_recurring: bool = False

    @field_validator("default_category", mode="before")
    @classmethod
    def _category_value(cls, value: object) -> object:
        return _enum_value(value)


class SessionIn(BaseModel):
    date: dt.date
    title: str = Field(default="", max_length=200)


class SessionIncomesIn(BaseModel):
    values: dict[str, Optional[str]] = Field(default_factory=dict)


class SessionExpenseIn(BaseModel):
    description: str = Field(default="", max_length=500)
    amount: Optional[str] = None


class StaffHoursIn(BaseModel):
    hours: Optional[str] = None


class PaymentBreakdownIn(BaseModel):
    cash: Optional[str] = None
    card: Optional[str] = None
    transfer: Optional[str] = None
