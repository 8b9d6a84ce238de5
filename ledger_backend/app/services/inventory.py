"""
Inventory operations on inventory-backed ledger entries.

- consume: a drive uses goods (locks the entry against voiding)
- transfer: goods change hands between volunteers (also locks the entry)
- adjust: correct the recorded quantity, never below what is consumed

Each operation commits its own row first, then writes the audit and
inventory trails best-effort, then invalidates the affected views.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import ValidationFailureError
from ledger_backend.app.models.cause import Cause
from ledger_backend.app.models.custody_transfer import CustodyTransfer
from ledger_backend.app.models.inventory_consumption import InventoryConsumption
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.ledger_enums import (
    AuditAction,
    InventoryChangeType,
    InventorySource,
)
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.services import ledger_store
from ledger_backend.app.services.audit import record_audit_event
from ledger_backend.app.services.cache import CacheService, CacheView, invalidate_ledger_views
from ledger_backend.app.services.currency import effective_rate
from ledger_backend.app.services.inventory_history import record_inventory_history

logger = logging.getLogger("ledger.inventory")

INVENTORY_VIEWS = (CacheView.INVENTORY, CacheView.EXPENSES, CacheView.DASHBOARD)

ZERO = Decimal("0")


async def _inventory_entry(db: AsyncSession, entry_id: int, field: str) -> LedgerEntry:
    entry = await ledger_store.get_entry(db, entry_id)
    if entry is None or not entry.is_active:
        raise ValidationFailureError({field: ["Inventory item not found"]})
    if not ledger_store.is_inventory_backed(entry):
        raise ValidationFailureError({field: ["Entry does not hold inventory"]})
    return entry


async def consumed_quantity(db: AsyncSession, entry_id: int) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(InventoryConsumption.quantity), 0))
        .where(InventoryConsumption.ledger_entry_id == entry_id)
    )
    return Decimal(str(result.scalar_one()))


async def held_quantity(db: AsyncSession, entry: LedgerEntry, volunteer_id: int) -> Decimal:
    """Quantity of an entry's goods currently held by one volunteer."""
    initial_holder = entry.custodian_id or entry.from_user_id or entry.created_by
    held = Decimal(str(entry.quantity)) if volunteer_id == initial_holder else ZERO

    received = await db.execute(
        select(func.coalesce(func.sum(CustodyTransfer.quantity), 0)).where(
            CustodyTransfer.ledger_entry_id == entry.id,
            CustodyTransfer.to_volunteer_id == volunteer_id,
        )
    )
    handed_over = await db.execute(
        select(func.coalesce(func.sum(CustodyTransfer.quantity), 0)).where(
            CustodyTransfer.ledger_entry_id == entry.id,
            CustodyTransfer.from_volunteer_id == volunteer_id,
        )
    )
    return held + Decimal(str(received.scalar_one())) - Decimal(str(handed_over.scalar_one()))


def unit_price_in_base(entry: LedgerEntry) -> Decimal:
    if entry.unit_price is not None:
        return Decimal(str(entry.unit_price)) * effective_rate(entry.exchange_rate_to_base)
    if entry.quantity:
        return Decimal(str(entry.amount_in_base_currency)) / Decimal(str(entry.quantity))
    return ZERO


async def consume_inventory(
    db: AsyncSession,
    ledger_entry_id: int,
    cause_id: int,
    quantity: Decimal,
    notes: str,
    actor_id: int,
) -> InventoryConsumption:
    """
    Record drive consumption of an inventory item.

    Raises:
        ValidationFailureError: Unknown entry/cause or quantity above availability
    """
    entry = await _inventory_entry(db, ledger_entry_id, "quantity")

    cause = await db.execute(
        select(Cause.id).where(Cause.id == cause_id, Cause.deleted_at.is_(None))
    )
    if cause.scalar_one_or_none() is None:
        raise ValidationFailureError({"cause_id": ["Cause not found"]})

    available = Decimal(str(entry.quantity)) - await consumed_quantity(db, ledger_entry_id)
    if quantity > available:
        raise ValidationFailureError(
            {"quantity": [f"Only {available.normalize():f} available (requested {quantity.normalize():f})"]}
        )

    item_name = entry.item_name
    consumption = InventoryConsumption(
        ledger_entry_id=ledger_entry_id,
        cause_id=cause_id,
        quantity=quantity,
        unit_price_base=unit_price_in_base(entry),
        notes=notes.strip(),
        consumed_by=actor_id,
    )
    db.add(consumption)
    await db.commit()
    consumption_id = consumption.id
    logger.info("Consumed %s of entry %s for cause %s", quantity, ledger_entry_id, cause_id)

    await record_audit_event(
        db,
        action=AuditAction.CONSUME,
        table_name="inventory_consumption",
        record_id=consumption_id,
        actor_id=actor_id,
        reason=notes.strip(),
        new_data={
            "ledger_entry_id": ledger_entry_id,
            "cause_id": cause_id,
            "quantity": str(quantity),
        },
        metadata={"module": "inventory"},
    )
    await record_inventory_history(
        db,
        item_name=item_name,
        change_type=InventoryChangeType.USED,
        source=InventorySource.DRIVE_CONSUMPTION,
        delta_qty=-quantity,
        actor_id=actor_id,
        ledger_entry_id=ledger_entry_id,
        reference_table="inventory_consumption",
        reference_id=consumption_id,
        notes=notes.strip(),
        metadata={"cause_id": cause_id},
    )
    await CacheService.invalidate_views(INVENTORY_VIEWS)

    result = await db.execute(
        select(InventoryConsumption).where(InventoryConsumption.id == consumption_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def transfer_custody(
    db: AsyncSession,
    ledger_entry_id: int,
    from_volunteer_id: int,
    to_volunteer_id: int,
    quantity: Decimal,
    actor_id: int,
) -> CustodyTransfer:
    """
    Hand goods from one volunteer to another.

    On-hand quantity is unchanged; the history row carries a zero delta.
    """
    if from_volunteer_id == to_volunteer_id:
        raise ValidationFailureError({"to_volunteer_id": ["Cannot transfer to the same volunteer"]})

    entry = await _inventory_entry(db, ledger_entry_id, "ledger_entry_id")

    volunteer = await db.execute(select(Volunteer.id).where(Volunteer.id == to_volunteer_id))
    if volunteer.scalar_one_or_none() is None:
        raise ValidationFailureError({"to_volunteer_id": ["Volunteer not found"]})

    held = await held_quantity(db, entry, from_volunteer_id)
    if held <= 0:
        raise ValidationFailureError({"from_volunteer_id": ["Volunteer does not hold this item"]})
    if quantity > held:
        raise ValidationFailureError(
            {"quantity": [f"Volunteer only holds {held.normalize():f} (requested {quantity.normalize():f})"]}
        )

    item_name = entry.item_name
    transfer = CustodyTransfer(
        ledger_entry_id=ledger_entry_id,
        from_volunteer_id=from_volunteer_id,
        to_volunteer_id=to_volunteer_id,
        quantity=quantity,
        transferred_by=actor_id,
    )
    db.add(transfer)
    await db.commit()
    transfer_id = transfer.id

    await record_audit_event(
        db,
        action=AuditAction.TRANSFER,
        table_name="custody_transfers",
        record_id=transfer_id,
        actor_id=actor_id,
        new_data={
            "ledger_entry_id": ledger_entry_id,
            "from_volunteer_id": from_volunteer_id,
            "to_volunteer_id": to_volunteer_id,
            "quantity": str(quantity),
        },
        metadata={"module": "inventory"},
    )
    await record_inventory_history(
        db,
        item_name=item_name,
        change_type=InventoryChangeType.TRANSFER,
        source=InventorySource.MANUAL,
        delta_qty=ZERO,
        actor_id=actor_id,
        ledger_entry_id=ledger_entry_id,
        reference_table="custody_transfers",
        reference_id=transfer_id,
        metadata={
            "from_volunteer_id": from_volunteer_id,
            "to_volunteer_id": to_volunteer_id,
            "quantity": str(quantity),
        },
    )
    await CacheService.invalidate_views(INVENTORY_VIEWS)

    result = await db.execute(
        select(CustodyTransfer).where(CustodyTransfer.id == transfer_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def adjust_inventory(
    db: AsyncSession,
    ledger_entry_id: int,
    new_quantity: Decimal,
    actor_id: int,
    reason: Optional[str] = None,
) -> LedgerEntry:
    """
    Correct the quantity of an inventory-backed entry.

    Amounts are recomputed from the unit price at the entry's own rate. The
    write is conditional on the entry still being active and the new
    quantity still covering what has been consumed.
    """
    entry = await _inventory_entry(db, ledger_entry_id, "new_quantity")

    consumed = await consumed_quantity(db, ledger_entry_id)
    if new_quantity < consumed:
        raise ValidationFailureError(
            {"new_quantity": [
                f"Cannot reduce below {consumed.normalize():f} ({consumed.normalize():f} already consumed)"
            ]}
        )

    previous = ledger_store.entry_snapshot(entry)
    old_quantity = Decimal(str(entry.quantity))
    item_name = entry.item_name
    volunteers = ledger_store.entry_volunteers(entry)

    values = {"quantity": new_quantity}
    if entry.unit_price is not None:
        amount = new_quantity * Decimal(str(entry.unit_price))
        values["amount"] = amount
        values["amount_in_base_currency"] = amount * effective_rate(entry.exchange_rate_to_base)

    consumed_total = (
        select(func.coalesce(func.sum(InventoryConsumption.quantity), 0))
        .where(InventoryConsumption.ledger_entry_id == ledger_entry_id)
        .scalar_subquery()
    )
    result = await db.execute(
        update(LedgerEntry)
        .where(
            LedgerEntry.id == ledger_entry_id,
            LedgerEntry.deleted_at.is_(None),
            consumed_total <= new_quantity,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount != 1:
        # Voided or consumed between the checks above and the write
        current = await ledger_store.get_entry(db, ledger_entry_id)
        if current is None or not current.is_active:
            raise ValidationFailureError({"new_quantity": ["Inventory item not found"]})
        consumed = await consumed_quantity(db, ledger_entry_id)
        raise ValidationFailureError(
            {"new_quantity": [
                f"Cannot reduce below {consumed.normalize():f} ({consumed.normalize():f} already consumed)"
            ]}
        )

    current = await ledger_store.require_entry(db, ledger_entry_id)
    new_data = ledger_store.entry_snapshot(current)

    await record_audit_event(
        db,
        action=AuditAction.ADJUST,
        table_name=ledger_store.LEDGER_TABLE,
        record_id=ledger_entry_id,
        actor_id=actor_id,
        reason=reason,
        previous_data=previous,
        new_data=new_data,
        metadata={"module": "inventory"},
    )
    await record_inventory_history(
        db,
        item_name=item_name,
        change_type=InventoryChangeType.ADJUSTED,
        source=InventorySource.MANUAL,
        delta_qty=new_quantity - old_quantity,
        actor_id=actor_id,
        ledger_entry_id=ledger_entry_id,
        reference_table=ledger_store.LEDGER_TABLE,
        reference_id=ledger_entry_id,
        notes=reason,
    )
    # Amounts changed; balances depend on them
    await invalidate_ledger_views(*volunteers)
    return await ledger_store.require_entry(db, ledger_entry_id)
