"""
Public Transparency Schemas.

Verification responses carry aggregate confirmation only, never donor identity.
"""

from pydantic import BaseModel, Field
import datetime as dt
from typing import Optional


class VerifyDonationRequest(BaseModel):
    tx_ref: str = Field(..., max_length=200)


class VerifyDonationResponse(BaseModel):
    found: bool
    date: Optional[dt.date] = None
    amount: Optional[float] = None
    currency_symbol: Optional[str] = None
    cause_name: Optional[str] = None
