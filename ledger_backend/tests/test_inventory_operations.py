"""
Consume / transfer / adjust tests for inventory-backed entries.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from ledger_backend.app.core.exceptions import InventoryAlreadyConsumedError, ValidationFailureError
from ledger_backend.app.models.inventory_history import InventoryHistory
from ledger_backend.app.models.ledger_enums import InventoryChangeType, InventorySource
from ledger_backend.app.services import inventory as inventory_service
from ledger_backend.app.services import ledger_store
from ledger_backend.app.services.void_restore import LedgerStateMachine


async def _history(db, entry_id):
    result = await db.execute(
        select(InventoryHistory)
        .where(InventoryHistory.ledger_entry_id == entry_id)
        .order_by(InventoryHistory.id)
    )
    return list(result.scalars().all())


async def test_consume_records_usage(db_session, inventory_entry, cause, volunteer):
    consumption = await inventory_service.consume_inventory(
        db_session, inventory_entry.id, cause.id, Decimal("4"), "Distributed at camp", volunteer.id
    )

    assert consumption.quantity == Decimal("4")
    assert consumption.unit_price_base == Decimal("50")

    [row] = await _history(db_session, inventory_entry.id)
    assert row.change_type == InventoryChangeType.USED
    assert row.source == InventorySource.DRIVE_CONSUMPTION
    assert row.delta_qty == Decimal("-4")


async def test_consume_above_availability_is_rejected(db_session, inventory_entry, cause, volunteer):
    await inventory_service.consume_inventory(
        db_session, inventory_entry.id, cause.id, Decimal("8"), "first", volunteer.id
    )

    with pytest.raises(ValidationFailureError) as exc_info:
        await inventory_service.consume_inventory(
            db_session, inventory_entry.id, cause.id, Decimal("3"), "second", volunteer.id
        )
    assert exc_info.value.fields["quantity"] == ["Only 2 available (requested 3)"]


async def test_consumed_entry_cannot_be_voided(db_session, inventory_entry, cause, volunteer):
    await inventory_service.consume_inventory(
        db_session, inventory_entry.id, cause.id, Decimal("1"), "used", volunteer.id
    )

    with pytest.raises(InventoryAlreadyConsumedError):
        await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "mistake", volunteer.id)


async def test_consume_from_voided_entry_is_rejected(db_session, inventory_entry, cause, volunteer):
    await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "mistake", volunteer.id)

    with pytest.raises(ValidationFailureError):
        await inventory_service.consume_inventory(
            db_session, inventory_entry.id, cause.id, Decimal("1"), "used", volunteer.id
        )


async def test_transfer_moves_custody_not_stock(db_session, inventory_entry, volunteer, other_volunteer):
    # inventory_entry has no custodian; the creator holds it
    await inventory_service.transfer_custody(
        db_session, inventory_entry.id, volunteer.id, other_volunteer.id, Decimal("6"), volunteer.id
    )

    assert await inventory_service.held_quantity(db_session, inventory_entry, volunteer.id) == Decimal("4")
    assert await inventory_service.held_quantity(db_session, inventory_entry, other_volunteer.id) == Decimal("6")

    [row] = await _history(db_session, inventory_entry.id)
    assert row.change_type == InventoryChangeType.TRANSFER
    assert row.delta_qty == Decimal("0")


async def test_transfer_to_same_volunteer_is_rejected(db_session, inventory_entry, volunteer):
    with pytest.raises(ValidationFailureError) as exc_info:
        await inventory_service.transfer_custody(
            db_session, inventory_entry.id, volunteer.id, volunteer.id, Decimal("1"), volunteer.id
        )
    assert "to_volunteer_id" in exc_info.value.fields


async def test_transfer_more_than_held_is_rejected(db_session, inventory_entry, volunteer, other_volunteer):
    with pytest.raises(ValidationFailureError) as exc_info:
        await inventory_service.transfer_custody(
            db_session, inventory_entry.id, other_volunteer.id, volunteer.id, Decimal("1"), volunteer.id
        )
    assert "from_volunteer_id" in exc_info.value.fields


async def test_adjust_updates_quantity_and_amounts(db_session, inventory_entry, volunteer):
    await inventory_service.adjust_inventory(db_session, inventory_entry.id, Decimal("7"), volunteer.id)

    entry = await ledger_store.get_entry(db_session, inventory_entry.id)
    assert entry.quantity == Decimal("7")
    assert entry.amount == Decimal("350")
    assert entry.amount_in_base_currency == Decimal("350")

    [row] = await _history(db_session, inventory_entry.id)
    assert row.change_type == InventoryChangeType.ADJUSTED
    assert row.source == InventorySource.MANUAL
    assert row.delta_qty == Decimal("-3")


async def test_adjust_below_consumed_is_rejected(db_session, inventory_entry, cause, volunteer):
    await inventory_service.consume_inventory(
        db_session, inventory_entry.id, cause.id, Decimal("5"), "used", volunteer.id
    )

    with pytest.raises(ValidationFailureError) as exc_info:
        await inventory_service.adjust_inventory(db_session, inventory_entry.id, Decimal("4"), volunteer.id)
    assert "new_quantity" in exc_info.value.fields


async def test_adjust_rejects_entry_voided_mid_request(db_session, inventory_entry, volunteer, mocker):
    count_consumed = inventory_service.consumed_quantity

    async def void_during_check(db, entry_id):
        await LedgerStateMachine.void_entry(db, entry_id, "duplicate purchase", volunteer.id)
        return await count_consumed(db, entry_id)

    mocker.patch.object(inventory_service, "consumed_quantity", side_effect=void_during_check)

    with pytest.raises(ValidationFailureError) as exc_info:
        await inventory_service.adjust_inventory(db_session, inventory_entry.id, Decimal("7"), volunteer.id)
    assert exc_info.value.fields["new_quantity"] == ["Inventory item not found"]

    entry = await ledger_store.get_entry(db_session, inventory_entry.id)
    assert entry.quantity == Decimal("10")
    assert entry.amount == Decimal("500")

    rows = await _history(db_session, inventory_entry.id)
    assert [row.change_type for row in rows] == [InventoryChangeType.VOID_REVERSAL]

    # Void and restore stay equal and opposite
    await LedgerStateMachine.restore_entry(db_session, inventory_entry.id, None, volunteer.id)
    rows = await _history(db_session, inventory_entry.id)
    assert sum(row.delta_qty for row in rows) == Decimal("0")
