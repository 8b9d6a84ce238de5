"""
Void/Restore State Machine.

A ledger entry is either Active or Voided:

    Active --void(reason)--> Voided --restore--> Active

Each transition is a single conditional UPDATE on the expected prior state.
Audit and inventory trail writes run only after that UPDATE has committed
and are best-effort.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import (
    AlreadyActiveError,
    AlreadyVoidedError,
    InventoryAlreadyConsumedError,
    ResourceNotFoundError,
    UnauthenticatedError,
    ValidationFailureError,
)
from ledger_backend.app.models.ledger_enums import AuditAction, InventoryChangeType
from ledger_backend.app.services import ledger_store
from ledger_backend.app.services.audit import record_audit_event
from ledger_backend.app.services.cache import invalidate_ledger_views
from ledger_backend.app.services.consumption_guard import has_downstream_consumption
from ledger_backend.app.services.inventory_history import record_inventory_history

logger = logging.getLogger("ledger.void_restore")

DEFAULT_RESTORE_NOTE = "Ledger entry restored"


class LedgerStateMachine:
    """Void and restore operations for ledger entries."""

    @staticmethod
    async def void_entry(
        db: AsyncSession,
        entry_id: int,
        reason: Optional[str],
        actor_id: Optional[int],
        volunteer_id: Optional[int] = None,
    ) -> bool:
        """
        Void an active ledger entry.

        Args:
            db: Database session
            entry_id: Entry to void
            reason: Mandatory justification (trimmed before storage)
            actor_id: Volunteer performing the void
            volunteer_id: Volunteer whose cash view should also be invalidated

        Returns:
            True on success

        Raises:
            ValidationFailureError: Empty reason
            UnauthenticatedError: No actor
            ResourceNotFoundError: Entry does not exist
            AlreadyVoidedError: Entry is already voided
            InventoryAlreadyConsumedError: Goods have been used or transferred
            GuardUnavailableError: Consumption check failed
        """
        # 1. Input checks
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailureError({"reason": ["A reason is required to void an entry"]})
        if actor_id is None:
            raise UnauthenticatedError()

        # 2. Current state
        entry = await ledger_store.require_entry(db, entry_id)
        if not entry.is_active:
            raise AlreadyVoidedError(entry_id)

        inventory_backed = ledger_store.is_inventory_backed(entry)
        previous = ledger_store.entry_snapshot(entry)
        entry_type = entry.type
        item_name = entry.item_name
        quantity = entry.quantity

        # 3. Downstream usage locks goods entries
        if inventory_backed and await has_downstream_consumption(db, entry_id):
            raise InventoryAlreadyConsumedError(entry_id)

        # 4. Transition
        now = datetime.now(timezone.utc)
        changed = await ledger_store.mark_voided(
            db, entry_id, actor_id, reason, now, require_unconsumed=inventory_backed
        )
        if not changed:
            current = await ledger_store.get_entry(db, entry_id)
            if current is None:
                raise ResourceNotFoundError("Ledger entry", entry_id)
            if not current.is_active:
                raise AlreadyVoidedError(entry_id)
            # Consumption was recorded between the check and the update
            raise InventoryAlreadyConsumedError(entry_id)

        current = await ledger_store.require_entry(db, entry_id)
        new_data = ledger_store.entry_snapshot(current)
        logger.info("Voided ledger entry %s by volunteer %s", entry_id, actor_id)

        # 5. Best-effort trails
        await record_audit_event(
            db,
            action=AuditAction.VOID,
            table_name=ledger_store.LEDGER_TABLE,
            record_id=entry_id,
            actor_id=actor_id,
            reason=reason,
            previous_data=previous,
            new_data=new_data,
            metadata={"module": ledger_store.ledger_module(entry_type)},
        )
        if inventory_backed:
            await record_inventory_history(
                db,
                item_name=item_name,
                change_type=InventoryChangeType.VOID_REVERSAL,
                source=ledger_store.inventory_source(entry_type),
                delta_qty=-quantity,
                actor_id=actor_id,
                ledger_entry_id=entry_id,
                reference_table=ledger_store.LEDGER_TABLE,
                reference_id=entry_id,
                notes=reason,
            )

        # 6. Views
        await invalidate_ledger_views(volunteer_id)
        return True

    @staticmethod
    async def restore_entry(
        db: AsyncSession,
        entry_id: int,
        reason: Optional[str],
        actor_id: Optional[int],
        volunteer_id: Optional[int] = None,
    ) -> bool:
        """
        Restore a voided ledger entry.

        Raises:
            UnauthenticatedError: No actor
            ResourceNotFoundError: Entry does not exist
            AlreadyActiveError: Entry is not voided
        """
        if actor_id is None:
            raise UnauthenticatedError()
        reason = (reason or "").strip() or None

        entry = await ledger_store.require_entry(db, entry_id)
        if entry.is_active:
            raise AlreadyActiveError(entry_id)

        inventory_backed = ledger_store.is_inventory_backed(entry)
        previous = ledger_store.entry_snapshot(entry)
        entry_type = entry.type
        item_name = entry.item_name
        quantity = entry.quantity

        now = datetime.now(timezone.utc)
        changed = await ledger_store.mark_restored(db, entry_id, actor_id, now)
        if not changed:
            current = await ledger_store.get_entry(db, entry_id)
            if current is None:
                raise ResourceNotFoundError("Ledger entry", entry_id)
            raise AlreadyActiveError(entry_id)

        current = await ledger_store.require_entry(db, entry_id)
        new_data = ledger_store.entry_snapshot(current)
        logger.info("Restored ledger entry %s by volunteer %s", entry_id, actor_id)

        await record_audit_event(
            db,
            action=AuditAction.RESTORE,
            table_name=ledger_store.LEDGER_TABLE,
            record_id=entry_id,
            actor_id=actor_id,
            reason=reason,
            previous_data=previous,
            new_data=new_data,
            metadata={"module": ledger_store.ledger_module(entry_type)},
        )
        if inventory_backed:
            await record_inventory_history(
                db,
                item_name=item_name,
                change_type=InventoryChangeType.RESTORED,
                source=ledger_store.inventory_source(entry_type),
                delta_qty=quantity,
                actor_id=actor_id,
                ledger_entry_id=entry_id,
                reference_table=ledger_store.LEDGER_TABLE,
                reference_id=entry_id,
                notes=reason or DEFAULT_RESTORE_NOTE,
            )

        await invalidate_ledger_views(volunteer_id)
        return True
