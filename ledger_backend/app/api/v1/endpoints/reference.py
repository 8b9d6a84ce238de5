"""
Reference Data API Endpoints.

Currencies, bank accounts, donors and causes.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.dependencies import get_current_user
from ledger_backend.app.db.session import get_db
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.schemas.reference import (
    BankAccountCreate,
    BankAccountResponse,
    CauseCreate,
    CauseResponse,
    CurrencyCreate,
    CurrencyResponse,
    DonorCreate,
    DonorResponse,
)
from ledger_backend.app.services import reference as reference_service
from ledger_backend.app.services.currency import create_currency, list_currencies

router = APIRouter(prefix="/reference", tags=["Reference Data"])


@router.get("/currencies", response_model=List[CurrencyResponse])
async def get_currencies(
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Active currencies, base currency first."""
    currencies = await list_currencies(db)
    return [CurrencyResponse.model_validate(c) for c in currencies]


@router.post("/currencies", response_model=CurrencyResponse, status_code=status.HTTP_201_CREATED)
async def add_currency(
    payload: CurrencyCreate,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    currency = await create_currency(db, payload)
    return CurrencyResponse.model_validate(currency)


@router.get("/bank-accounts", response_model=List[BankAccountResponse])
async def get_bank_accounts(
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    accounts = await reference_service.list_bank_accounts(db)
    return [BankAccountResponse.model_validate(a) for a in accounts]


@router.post("/bank-accounts", response_model=BankAccountResponse, status_code=status.HTTP_201_CREATED)
async def add_bank_account(
    payload: BankAccountCreate,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    account = await reference_service.create_bank_account(db, payload)
    return BankAccountResponse.model_validate(account)


@router.post("/donors", response_model=DonorResponse, status_code=status.HTTP_201_CREATED)
async def add_donor(
    payload: DonorCreate,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    donor = await reference_service.create_donor(db, payload)
    return DonorResponse.model_validate(donor)


@router.post("/causes", response_model=CauseResponse, status_code=status.HTTP_201_CREATED)
async def add_cause(
    payload: CauseCreate,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    cause = await reference_service.create_cause(db, payload)
    return CauseResponse.model_validate(cause)
