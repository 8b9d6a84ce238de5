"""
Currency & Rate Table.

Conversion helpers and reference-data access for currencies. Every ledger
entry copies the rate in effect when it is written; the helpers here are
used at write time and when re-expressing aggregates in a native currency.
"""

from decimal import Decimal
from typing import Optional, Tuple, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import ResourceNotFoundError, ValidationFailureError
from ledger_backend.app.models.currency import Currency
from ledger_backend.app.schemas.reference import CurrencyCreate

ONE = Decimal("1")


def effective_rate(rate) -> Decimal:
    """Non-positive or missing rates are treated as 1."""
    if rate is None:
        return ONE
    rate = Decimal(str(rate))
    if rate <= 0:
        return ONE
    return rate


def to_base_amount(amount, rate) -> Decimal:
    return Decimal(str(amount or 0)) * effective_rate(rate)


async def get_base_currency(db: AsyncSession) -> Optional[Currency]:
    result = await db.execute(
        select(Currency)
        .where(Currency.is_base.is_(True), Currency.deleted_at.is_(None))
        .order_by(Currency.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_currency(db: AsyncSession, currency_id: int) -> Currency:
    result = await db.execute(
        select(Currency).where(Currency.id == currency_id, Currency.deleted_at.is_(None))
    )
    currency = result.scalar_one_or_none()
    if not currency:
        raise ResourceNotFoundError("Currency", currency_id)
    return currency


async def resolve_currency_and_rate(
    db: AsyncSession,
    currency_id: Optional[int],
    rate: Optional[Decimal],
) -> Tuple[int, Decimal]:
    """
    Resolve the currency and rate to stamp on a new entry.

    When either is missing the base currency and its configured rate are
    used instead.

    Raises:
        ValidationFailureError: No currency given and no base currency configured
        ResourceNotFoundError: Explicit currency does not exist
    """
    if currency_id is not None and rate is not None:
        await get_currency(db, currency_id)
        return currency_id, effective_rate(rate)

    if currency_id is not None:
        currency = await get_currency(db, currency_id)
        return currency.id, effective_rate(currency.exchange_rate_to_base)

    base = await get_base_currency(db)
    if base is None:
        raise ValidationFailureError(
            {"amount": ["No base currency configured. Please set one in settings."]}
        )
    return base.id, effective_rate(rate if rate is not None else base.exchange_rate_to_base)


async def create_currency(db: AsyncSession, payload: CurrencyCreate) -> Currency:
    code = payload.code.strip().upper()
    existing = await db.execute(select(Currency.id).where(Currency.code == code))
    if existing.scalar_one_or_none() is not None:
        raise ValidationFailureError({"code": [f"Currency {code} already exists"]})

    if payload.is_base:
        # Only one base currency at a time
        current = await get_base_currency(db)
        if current is not None:
            current.is_base = False

    currency = Currency(
        code=code,
        name=payload.name,
        symbol=payload.symbol,
        exchange_rate_to_base=Decimal("1") if payload.is_base else payload.exchange_rate_to_base,
        is_base=payload.is_base,
    )
    db.add(currency)
    await db.commit()
    await db.refresh(currency)
    return currency


async def list_currencies(db: AsyncSession) -> List[Currency]:
    result = await db.execute(
        select(Currency)
        .where(Currency.deleted_at.is_(None))
        .order_by(Currency.is_base.desc(), Currency.code)
    )
    return list(result.scalars().all())
