"""
Balance Schemas.

Balances are derived on every read; none of these values are stored.
"""

from pydantic import BaseModel


class BankAccountBalance(BaseModel):
    """Derived balance for one bank account."""
    account_id: int
    account_name: str
    bank_name: str
    opening_balance: float
    total_deposits: float  # base currency
    total_withdrawals: float  # base currency
    native_balance: float
    currency_code: str
    currency_symbol: str


class VolunteerCashBalance(BaseModel):
    """Cash held by a volunteer, in base currency."""
    volunteer_id: int
    name: str
    balance: float
