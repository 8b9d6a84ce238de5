"""
Balance Aggregator.

Balances are never stored. They are recomputed from active ledger entries on
every read; the bank account view may be served from the Redis view cache,
which every ledger mutation invalidates.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.models.bank_account import BankAccount
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.ledger_enums import LedgerEntryType
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.schemas.balances import BankAccountBalance, VolunteerCashBalance
from ledger_backend.app.services.cache import CacheService, CacheView
from ledger_backend.app.services.currency import effective_rate

logger = logging.getLogger("ledger.balances")

ZERO = Decimal("0")
CENTS = Decimal("0.01")

BANK_DEPOSIT_TYPES = (LedgerEntryType.DONATION_BANK, LedgerEntryType.CASH_DEPOSIT)
BANK_WITHDRAWAL_TYPES = (LedgerEntryType.EXPENSE_BANK, LedgerEntryType.BANK_WITHDRAWAL)

# (entry type, party column) pairs moving cash into / out of a volunteer's hands
CASH_INFLOWS = (
    (LedgerEntryType.DONATION_CASH, LedgerEntry.to_user_id),
    (LedgerEntryType.CASH_TRANSFER, LedgerEntry.to_user_id),
    (LedgerEntryType.BANK_WITHDRAWAL, LedgerEntry.to_user_id),
)
CASH_OUTFLOWS = (
    (LedgerEntryType.CASH_TRANSFER, LedgerEntry.from_user_id),
    (LedgerEntryType.CASH_DEPOSIT, LedgerEntry.from_user_id),
    (LedgerEntryType.EXPENSE_CASH, LedgerEntry.from_user_id),
)


def native_balance(opening_balance, account_rate, deposits_base, withdrawals_base) -> Decimal:
    """
    Re-express a base-currency aggregate in the account's own currency.

    native = (opening * rate + deposits - withdrawals) / rate
    """
    rate = effective_rate(account_rate)
    opening = Decimal(str(opening_balance or 0))
    total_base = opening * rate + Decimal(str(deposits_base)) - Decimal(str(withdrawals_base))
    return (total_base / rate).quantize(CENTS, rounding=ROUND_HALF_UP)


async def _sum_by_account(db: AsyncSession, types) -> Dict[int, Decimal]:
    result = await db.execute(
        select(LedgerEntry.bank_account_id, func.sum(LedgerEntry.amount_in_base_currency))
        .where(
            LedgerEntry.type.in_(types),
            LedgerEntry.deleted_at.is_(None),
            LedgerEntry.bank_account_id.is_not(None),
        )
        .group_by(LedgerEntry.bank_account_id)
    )
    return {account_id: Decimal(str(total or 0)) for account_id, total in result.all()}


async def compute_bank_account_balances(db: AsyncSession) -> List[BankAccountBalance]:
    """Derive every active bank account's balance from the entry log."""
    accounts = await db.execute(
        select(BankAccount)
        .where(BankAccount.deleted_at.is_(None))
        .order_by(BankAccount.account_name)
    )
    deposits = await _sum_by_account(db, BANK_DEPOSIT_TYPES)
    withdrawals = await _sum_by_account(db, BANK_WITHDRAWAL_TYPES)

    balances = []
    for account in accounts.scalars().all():
        deposited = deposits.get(account.id, ZERO)
        withdrawn = withdrawals.get(account.id, ZERO)
        currency = account.currency
        balances.append(
            BankAccountBalance(
                account_id=account.id,
                account_name=account.account_name,
                bank_name=account.bank_name,
                opening_balance=float(account.opening_balance or 0),
                total_deposits=float(deposited),
                total_withdrawals=float(withdrawn),
                native_balance=float(
                    native_balance(
                        account.opening_balance,
                        currency.exchange_rate_to_base if currency else None,
                        deposited,
                        withdrawn,
                    )
                ),
                currency_code=currency.code if currency else "",
                currency_symbol=currency.symbol if currency else "",
            )
        )
    return balances


async def get_bank_account_balances(db: AsyncSession) -> List[BankAccountBalance]:
    """Bank balances through the view cache."""
    cached = await CacheService.get(CacheView.BANK_ACCOUNTS)
    if cached is not None:
        return [BankAccountBalance(**item) for item in cached]

    balances = await compute_bank_account_balances(db)
    await CacheService.set(CacheView.BANK_ACCOUNTS, [b.model_dump() for b in balances])
    return balances


async def _sum_by_volunteer(db: AsyncSession, flows) -> Dict[int, Decimal]:
    totals: Dict[int, Decimal] = {}
    for entry_type, column in flows:
        result = await db.execute(
            select(column, func.sum(LedgerEntry.amount_in_base_currency))
            .where(
                LedgerEntry.type == entry_type,
                LedgerEntry.deleted_at.is_(None),
                column.is_not(None),
            )
            .group_by(column)
        )
        for volunteer_id, total in result.all():
            totals[volunteer_id] = totals.get(volunteer_id, ZERO) + Decimal(str(total or 0))
    return totals


async def get_volunteer_cash_balances(db: AsyncSession) -> List[VolunteerCashBalance]:
    """Cash in hand per volunteer, in base currency."""
    inflows = await _sum_by_volunteer(db, CASH_INFLOWS)
    outflows = await _sum_by_volunteer(db, CASH_OUTFLOWS)

    volunteers = await db.execute(select(Volunteer).order_by(Volunteer.name))
    return [
        VolunteerCashBalance(
            volunteer_id=volunteer.id,
            name=volunteer.name,
            balance=float(
                (inflows.get(volunteer.id, ZERO) - outflows.get(volunteer.id, ZERO))
                .quantize(CENTS, rounding=ROUND_HALF_UP)
            ),
        )
        for volunteer in volunteers.scalars().all()
    ]
