"""
Inventory Consumption Guard.

An inventory-backed entry whose goods have been used by a drive or handed to
another volunteer may not be voided. The check fails closed: if the store
cannot answer, the caller gets GuardUnavailableError rather than a void.
"""

import logging

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import GuardUnavailableError
from ledger_backend.app.models.inventory_consumption import InventoryConsumption
from ledger_backend.app.models.custody_transfer import CustodyTransfer

logger = logging.getLogger("ledger.guard")


async def _count_references(db: AsyncSession, model, entry_id: int) -> int:
    result = await db.execute(
        select(func.count(model.id)).where(model.ledger_entry_id == entry_id)
    )
    return result.scalar_one()


async def has_downstream_consumption(db: AsyncSession, entry_id: int) -> bool:
    """
    True when at least one consumption or custody transfer references the entry.

    Raises:
        GuardUnavailableError: The lookup failed
    """
    try:
        if await _count_references(db, InventoryConsumption, entry_id) > 0:
            return True
        return await _count_references(db, CustodyTransfer, entry_id) > 0
    except SQLAlchemyError as e:
        logger.error("Consumption check failed for entry %s: %s", entry_id, e)
        raise GuardUnavailableError(entry_id) from e
