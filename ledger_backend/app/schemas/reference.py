"""
Reference Data Schemas.

Currencies, bank accounts, donors and causes.
"""

from pydantic import BaseModel, Field
import datetime as dt
from decimal import Decimal
from typing import Optional
from ledger_backend.app.models.ledger_enums import CauseType


class CurrencyCreate(BaseModel):
    """Schema for creating a currency."""
    code: str = Field(..., min_length=3, max_length=10)
    name: str = Field(..., min_length=1, max_length=100)
    symbol: str = Field(..., min_length=1, max_length=10)
    exchange_rate_to_base: Decimal = Field(..., gt=0)
    is_base: bool = False


class CurrencyResponse(BaseModel):
    id: int
    code: str
    name: str
    symbol: str
    exchange_rate_to_base: float
    is_base: bool

    class Config:
        from_attributes = True


class BankAccountCreate(BaseModel):
    """Schema for creating a bank account."""
    account_name: str = Field(..., min_length=1, max_length=150)
    bank_name: str = Field(..., min_length=1, max_length=150)
    account_number: Optional[str] = None
    currency_id: int
    opening_balance: Decimal = Field(Decimal("0"), ge=0)


class BankAccountResponse(BaseModel):
    id: int
    account_name: str
    bank_name: str
    account_number: Optional[str]
    currency_id: int
    opening_balance: float
    created_at: dt.datetime

    class Config:
        from_attributes = True


class DonorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class DonorResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class CauseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: CauseType = CauseType.DRIVE
    date: Optional[dt.date] = None


class CauseResponse(BaseModel):
    id: int
    name: str
    type: CauseType
    date: Optional[dt.date]

    class Config:
        from_attributes = True
