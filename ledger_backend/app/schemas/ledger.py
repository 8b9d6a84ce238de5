"""
Ledger Schemas.

Per-type creation payloads form a discriminated union on ``type`` so each
entry kind only accepts the party references it actually uses.
"""

import datetime as dt
from decimal import Decimal
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field

from ledger_backend.app.models.ledger_enums import LedgerEntryType, AuditAction


class _EntryCommon(BaseModel):
    date: dt.date
    description: Optional[str] = None
    cause_id: Optional[int] = None
    external_ref: Optional[str] = Field(None, max_length=80)


class _MonetaryEntry(_EntryCommon):
    amount: Decimal = Field(..., gt=0)
    currency_id: int
    exchange_rate_to_base: Decimal = Field(..., gt=0)


class _BaseCurrencyDefaultEntry(_EntryCommon):
    """Cash movements default to the base currency when none is given."""
    amount: Decimal = Field(..., gt=0)
    currency_id: Optional[int] = None
    exchange_rate_to_base: Optional[Decimal] = Field(None, gt=0)


class DonationBankCreate(_MonetaryEntry):
    type: Literal["donation_bank"]
    donor_id: int
    bank_account_id: int


class DonationCashCreate(_MonetaryEntry):
    type: Literal["donation_cash"]
    donor_id: int
    to_user_id: int


class DonationInKindCreate(_EntryCommon):
    type: Literal["donation_in_kind"]
    donor_id: int
    item_name: str = Field(..., min_length=1, max_length=200)
    quantity: Decimal = Field(..., gt=0)
    custodian_id: int
    # Goods may carry an estimated value; zero when unknown
    amount: Decimal = Field(Decimal("0"), ge=0)
    currency_id: Optional[int] = None
    exchange_rate_to_base: Optional[Decimal] = Field(None, gt=0)


class _ExpenseEntry(_EntryCommon):
    item_name: str = Field(..., min_length=1, max_length=200)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    currency_id: int
    exchange_rate_to_base: Decimal = Field(..., gt=0)
    custodian_id: Optional[int] = None

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price


class ExpenseBankCreate(_ExpenseEntry):
    type: Literal["expense_bank"]
    bank_account_id: int


class ExpenseCashCreate(_ExpenseEntry):
    type: Literal["expense_cash"]
    from_user_id: int


class CashTransferCreate(_BaseCurrencyDefaultEntry):
    type: Literal["cash_transfer"]
    from_user_id: int
    to_user_id: int


class CashDepositCreate(_BaseCurrencyDefaultEntry):
    type: Literal["cash_deposit"]
    from_user_id: int
    bank_account_id: int


class BankWithdrawalCreate(_BaseCurrencyDefaultEntry):
    type: Literal["bank_withdrawal"]
    bank_account_id: int
    to_user_id: int


LedgerEntryCreate = Annotated[
    Union[
        DonationBankCreate,
        DonationCashCreate,
        DonationInKindCreate,
        ExpenseBankCreate,
        ExpenseCashCreate,
        CashTransferCreate,
        CashDepositCreate,
        BankWithdrawalCreate,
    ],
    Field(discriminator="type"),
]


class LedgerEntryResponse(BaseModel):
    """Schema for displaying a ledger entry."""
    id: int
    type: LedgerEntryType
    amount: float
    currency_id: int
    exchange_rate_to_base: float
    amount_in_base_currency: float
    date: dt.date
    description: Optional[str]
    cause_id: Optional[int]
    item_name: Optional[str]
    quantity: Optional[float]
    unit_price: Optional[float]
    donor_id: Optional[int]
    bank_account_id: Optional[int]
    from_user_id: Optional[int]
    to_user_id: Optional[int]
    custodian_id: Optional[int]
    external_ref: Optional[str]
    created_by: int
    created_at: Optional[dt.datetime]
    deleted_at: Optional[dt.datetime]
    voided_at: Optional[dt.datetime]
    voided_by: Optional[int]
    void_reason: Optional[str]
    restored_at: Optional[dt.datetime]
    restored_by: Optional[int]

    class Config:
        from_attributes = True


class VoidEntryRequest(BaseModel):
    """Void a ledger entry. ``volunteer_id`` narrows cache invalidation."""
    reason: str = ""
    volunteer_id: Optional[int] = None


class RestoreEntryRequest(BaseModel):
    reason: Optional[str] = None
    volunteer_id: Optional[int] = None


class ActionResult(BaseModel):
    success: bool = True


class AuditEventResponse(BaseModel):
    """Schema for displaying an audit event."""
    id: int
    actor_id: Optional[int]
    table_name: str
    record_id: Optional[int]
    action: AuditAction
    reason: Optional[str]
    previous_data: Optional[Dict[str, Any]]
    new_data: Optional[Dict[str, Any]]
    meta_data: Optional[Dict[str, Any]]
    created_at: dt.datetime

    class Config:
        from_attributes = True
