"""
Balance API Endpoints.

Read-only views derived from the ledger on every request.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.dependencies import get_current_user
from ledger_backend.app.db.session import get_db
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.schemas.balances import BankAccountBalance, VolunteerCashBalance
from ledger_backend.app.services.balances import get_bank_account_balances, get_volunteer_cash_balances

router = APIRouter(prefix="/balances", tags=["Balances"])


@router.get("/bank-accounts", response_model=List[BankAccountBalance])
async def bank_account_balances(
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Balance of every active bank account in its own currency."""
    return await get_bank_account_balances(db)


@router.get("/volunteers", response_model=List[VolunteerCashBalance])
async def volunteer_cash_balances(
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await get_volunteer_cash_balances(db)
