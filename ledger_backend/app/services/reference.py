"""
Reference data: bank accounts, donors and causes.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import ValidationFailureError
from ledger_backend.app.models.bank_account import BankAccount
from ledger_backend.app.models.cause import Cause
from ledger_backend.app.models.currency import Currency
from ledger_backend.app.models.donor import Donor
from ledger_backend.app.schemas.reference import BankAccountCreate, DonorCreate, CauseCreate
from ledger_backend.app.services.cache import CacheService, CacheView


async def create_bank_account(db: AsyncSession, payload: BankAccountCreate) -> BankAccount:
    currency = await db.execute(
        select(Currency.id).where(Currency.id == payload.currency_id, Currency.deleted_at.is_(None))
    )
    if currency.scalar_one_or_none() is None:
        raise ValidationFailureError({"currency_id": ["Currency not found"]})

    account = BankAccount(**payload.model_dump())
    db.add(account)
    await db.commit()
    await db.refresh(account)
    await CacheService.invalidate_views([CacheView.BANK_ACCOUNTS, CacheView.DASHBOARD])
    return account


async def list_bank_accounts(db: AsyncSession) -> List[BankAccount]:
    result = await db.execute(
        select(BankAccount).where(BankAccount.deleted_at.is_(None)).order_by(BankAccount.account_name)
    )
    return list(result.scalars().all())


async def create_donor(db: AsyncSession, payload: DonorCreate) -> Donor:
    donor = Donor(name=payload.name.strip())
    db.add(donor)
    await db.commit()
    await db.refresh(donor)
    return donor


async def create_cause(db: AsyncSession, payload: CauseCreate) -> Cause:
    cause = Cause(name=payload.name.strip(), type=payload.type, date=payload.date)
    db.add(cause)
    await db.commit()
    await db.refresh(cause)
    return cause
