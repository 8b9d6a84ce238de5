"""
Inventory History Recorder.

Append-only quantity trail per inventory line. Item names are grouped by a
normalized key so that "Rice Bags" and " rice   bags" count as one line.

Writes follow the same best-effort contract as the audit trail: they run
after the primary mutation has committed and never raise.
"""

import logging
import re
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.models.inventory_history import InventoryHistory
from ledger_backend.app.models.ledger_enums import InventoryChangeType, InventorySource

logger = logging.getLogger("ledger.inventory_history")

HISTORY_LIMIT = 100

_WHITESPACE = re.compile(r"\s+")


def normalize_item_key(name: Optional[str]) -> str:
    # Deliberately coarse: no locale folding or punctuation handling
    return _WHITESPACE.sub(" ", (name or "").strip().lower())


async def record_inventory_history(
    db: AsyncSession,
    item_name: str,
    change_type: InventoryChangeType,
    source: InventorySource,
    delta_qty,
    actor_id: Optional[int] = None,
    ledger_entry_id: Optional[int] = None,
    reference_table: Optional[str] = None,
    reference_id: Optional[int] = None,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[InventoryHistory]:
    """
    Append one inventory history row.

    Returns:
        Created InventoryHistory, or None if the write failed
    """
    try:
        row = InventoryHistory(
            actor_id=actor_id,
            item_key=normalize_item_key(item_name),
            item_name=item_name.strip(),
            change_type=change_type,
            source=source,
            delta_qty=Decimal(str(delta_qty)),
            ledger_entry_id=ledger_entry_id,
            reference_table=reference_table,
            reference_id=reference_id,
            notes=notes,
            meta_data=metadata or {},
        )
        db.add(row)
        await db.commit()
        return row
    except Exception:
        logger.exception(
            "Failed to record inventory history %s for entry %s", change_type, ledger_entry_id
        )
        try:
            await db.rollback()
        except Exception:
            logger.exception("Rollback after failed inventory history write also failed")
        return None


async def get_inventory_history(
    db: AsyncSession,
    ledger_entry_id: Optional[int] = None,
    item_name: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Quantity trail for an entry or an item, newest first.

    Each row carries ``quantity_after``: the running on-hand total for its
    item key at that point, starting from zero.
    """
    if ledger_entry_id is None and not (item_name and item_name.strip()):
        return []

    query = select(InventoryHistory)
    if ledger_entry_id is not None:
        query = query.where(InventoryHistory.ledger_entry_id == ledger_entry_id)
    if item_name and item_name.strip():
        query = query.where(InventoryHistory.item_key == normalize_item_key(item_name))

    try:
        result = await db.execute(
            query.order_by(InventoryHistory.id.desc()).limit(HISTORY_LIMIT)
        )
        rows = list(result.scalars().all())

        # Running totals are computed per key over the full trail
        keys = {row.item_key for row in rows}
        running: Dict[str, Decimal] = {}
        after_by_id: Dict[int, Decimal] = {}
        if keys:
            trail = await db.execute(
                select(InventoryHistory.id, InventoryHistory.item_key, InventoryHistory.delta_qty)
                .where(InventoryHistory.item_key.in_(keys))
                .order_by(InventoryHistory.id)
            )
            for row_id, key, delta in trail.all():
                running[key] = running.get(key, Decimal("0")) + Decimal(str(delta))
                after_by_id[row_id] = running[key]
    except SQLAlchemyError:
        logger.exception("Inventory history unavailable")
        try:
            await db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after failed history read also failed")
        return []

    return [
        {
            "id": row.id,
            "ledger_entry_id": row.ledger_entry_id,
            "item_name": row.item_name,
            "change_type": row.change_type,
            "source": row.source,
            "delta": float(row.delta_qty),
            "quantity_after": float(after_by_id.get(row.id, Decimal("0"))),
            "notes": row.notes,
            "created_at": row.created_at,
        }
        for row in rows
    ]


async def get_on_hand_quantity(db: AsyncSession, item_name: str) -> Decimal:
    """Current on-hand quantity for an item: zero plus every recorded delta."""
    result = await db.execute(
        select(func.coalesce(func.sum(InventoryHistory.delta_qty), 0))
        .where(InventoryHistory.item_key == normalize_item_key(item_name))
    )
    return Decimal(str(result.scalar_one()))
