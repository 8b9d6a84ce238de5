"""
Public transparency: donation verification.

Anyone holding a bank transaction reference can confirm that the donation
was recorded. The response exposes the date, amount and cause only.
"""

import logging
import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import RateLimitExceededError
from ledger_backend.app.models.cause import Cause
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.ledger_enums import DONATION_TYPES
from ledger_backend.app.schemas.transparency import VerifyDonationResponse
from ledger_backend.app.services.rate_limiter import RateLimiter

logger = logging.getLogger("ledger.transparency")

TX_REF_MIN_LENGTH = 10
TX_REF_MAX_LENGTH = 50

_STRIP = re.compile(r"[\s\-]+")
_VALID_REF = re.compile(r"^[A-Z0-9]+$")


def normalize_tx_ref(raw: Optional[str]) -> str:
    """Trim, upper-case and drop whitespace and hyphens."""
    return _STRIP.sub("", (raw or "").strip().upper())


def is_valid_tx_ref(ref: str) -> bool:
    return TX_REF_MIN_LENGTH <= len(ref) <= TX_REF_MAX_LENGTH and bool(_VALID_REF.match(ref))


async def verify_donation(
    db: AsyncSession,
    tx_ref: str,
    client_address: str,
    limiter: RateLimiter,
) -> VerifyDonationResponse:
    """
    Look up an active donation by its transaction reference.

    The limiter is consulted before any validation so that malformed
    lookups count against the caller too.

    Raises:
        RateLimitExceededError: Caller exceeded the verification limit
    """
    if not await limiter.allow(client_address):
        logger.warning("Verification rate limit exceeded for %s", client_address)
        raise RateLimitExceededError()

    ref = normalize_tx_ref(tx_ref)
    if not is_valid_tx_ref(ref):
        return VerifyDonationResponse(found=False)

    try:
        result = await db.execute(
            select(LedgerEntry, Cause.name)
            .outerjoin(Cause, Cause.id == LedgerEntry.cause_id)
            .where(
                LedgerEntry.external_ref == ref,
                LedgerEntry.type.in_(DONATION_TYPES),
                LedgerEntry.deleted_at.is_(None),
            )
            .limit(1)
        )
        row = result.first()
    except SQLAlchemyError:
        logger.exception("Donation verification lookup failed")
        return VerifyDonationResponse(found=False)

    if row is None:
        return VerifyDonationResponse(found=False)

    entry, cause_name = row
    return VerifyDonationResponse(
        found=True,
        date=entry.date,
        amount=float(entry.amount),
        currency_symbol=entry.currency.symbol if entry.currency else None,
        cause_name=cause_name,
    )
