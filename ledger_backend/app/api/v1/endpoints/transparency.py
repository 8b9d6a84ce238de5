"""
Public Transparency Endpoints.

Unauthenticated. Rate limited per client address.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.dependencies import get_client_address
from ledger_backend.app.db.session import get_db
from ledger_backend.app.schemas.transparency import VerifyDonationRequest, VerifyDonationResponse
from ledger_backend.app.services.rate_limiter import RateLimiter, get_rate_limiter
from ledger_backend.app.services.transparency import verify_donation

router = APIRouter(prefix="/transparency", tags=["Transparency"])


@router.post("/verify", response_model=VerifyDonationResponse)
async def verify(
    request: VerifyDonationRequest,
    client_address: str = Depends(get_client_address),
    limiter: RateLimiter = Depends(get_rate_limiter),
    db: AsyncSession = Depends(get_db)
):
    """
    Confirm a donation by its bank transaction reference.

    Only date, amount, currency symbol and cause are disclosed.
    """
    return await verify_donation(db, request.tx_ref, client_address, limiter)
