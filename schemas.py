from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models import BudgetPeriod, TransactionType
from periods import parse_timestamp


# Largest amount accepted; keeps stored cents well inside a 64-bit integer.
MAX_AMOUNT = Decimal("9999999999.99")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _timestamp_or_none(value: object) -> object:
    if isinstance(value, str):
        if not value.strip():
            return None
        return parse_timestamp(value)
    return value


def _date_or_passthrough(value: object) -> object:
    if isinstance(value, str) and len(value.strip()) > 10:
        return parse_timestamp(value).date()
    if isinstance(value, datetime):
        return value.date()
    return value


class RegisterIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        local, _, domain = value.partition("@")
        if not local or not domain:
            raise ValueError("Invalid email address")
        return value


class LoginIn(ApiModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class CategoryIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: Optional[str] = Field(default=None, max_length=9)
    icon: Optional[str] = Field(default=None, max_length=16)


class CategoryUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=9)
    icon: Optional[str] = Field(default=None, max_length=16)


class TransactionIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT, allow_inf_nan=False)
    category: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    description: Optional[str] = None
    date: Optional[datetime] = None

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value: object) -> object:
        return _timestamp_or_none(value)


class TransactionUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(
        default=None, gt=0, le=MAX_AMOUNT, allow_inf_nan=False
    )
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[TransactionType] = None
    description: Optional[str] = None
    date: Optional[datetime] = None

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value: object) -> object:
        return _timestamp_or_none(value)


class BudgetIn(ApiModel):
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT, allow_inf_nan=False)
    period: BudgetPeriod
    start_date: date
    end_date: date

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, value: object) -> object:
        return _date_or_passthrough(value)


class BudgetUpdate(ApiModel):
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(
        default=None, gt=0, le=MAX_AMOUNT, allow_inf_nan=False
    )
    period: Optional[BudgetPeriod] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, value: object) -> object:
        return _date_or_passthrough(value)
