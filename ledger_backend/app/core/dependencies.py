"""
Request dependencies for FastAPI.

Resolves the acting volunteer from a bearer JWT and the client address used
to key public rate limits.
"""

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ledger_backend.app.core.exceptions import UnauthenticatedError
from ledger_backend.app.core.jwt import decode_access_token
from ledger_backend.app.db.session import get_db
from ledger_backend.app.models.volunteer import Volunteer

# Missing credentials surface as UnauthenticatedError, not FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Volunteer:
    """
    FastAPI dependency resolving the acting volunteer.

    Checks:
    1. Bearer token present and valid (signature, expiry)
    2. Payload carries a user_id
    3. Volunteer exists and is active

    Raises:
        UnauthenticatedError: 401 if any check fails
    """
    if credentials is None:
        raise UnauthenticatedError()

    # 1. Decode and validate JWT
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthenticatedError("Could not validate credentials")

    # 2. Token payload
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthenticatedError("Invalid token payload")

    # 3. Real-time check that the volunteer is still active
    result = await db.execute(select(Volunteer).where(Volunteer.id == user_id))
    volunteer = result.scalar_one_or_none()
    if not volunteer or not volunteer.is_active:
        raise UnauthenticatedError("Volunteer account is not active")

    return volunteer


def get_client_address(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
