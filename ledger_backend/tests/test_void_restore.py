"""
Void/Restore state machine tests.

Covers the transition rules, the consumption lock on inventory-backed
entries and the trail rows each transition leaves behind.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ledger_backend.app.core.exceptions import (
    AlreadyActiveError,
    AlreadyVoidedError,
    GuardUnavailableError,
    InventoryAlreadyConsumedError,
    ResourceNotFoundError,
    UnauthenticatedError,
    ValidationFailureError,
)
from ledger_backend.app.models.audit_event import AuditEvent
from ledger_backend.app.models.custody_transfer import CustodyTransfer
from ledger_backend.app.models.inventory_consumption import InventoryConsumption
from ledger_backend.app.models.inventory_history import InventoryHistory
from ledger_backend.app.models.ledger_enums import (
    AuditAction,
    InventoryChangeType,
    InventorySource,
    LedgerEntryType,
)
from ledger_backend.app.services import ledger_store
from ledger_backend.app.services.audit import record_audit_event
from ledger_backend.app.services.void_restore import LedgerStateMachine


async def _history_for(db, entry_id):
    result = await db.execute(
        select(InventoryHistory)
        .where(InventoryHistory.ledger_entry_id == entry_id)
        .order_by(InventoryHistory.id)
    )
    return list(result.scalars().all())


async def _audit_for(db, entry_id):
    result = await db.execute(
        select(AuditEvent).where(AuditEvent.record_id == entry_id).order_by(AuditEvent.id)
    )
    return list(result.scalars().all())


@pytest.fixture
async def donation(make_entry, donor, bank_account):
    return await make_entry(
        LedgerEntryType.DONATION_BANK,
        amount="500",
        donor_id=donor.id,
        bank_account_id=bank_account.id,
    )


async def test_void_sets_metadata(db_session, donation, volunteer):
    await LedgerStateMachine.void_entry(db_session, donation.id, "  duplicate entry  ", volunteer.id)

    entry = await ledger_store.get_entry(db_session, donation.id)
    assert entry.deleted_at is not None
    assert entry.voided_at == entry.deleted_at
    assert entry.voided_by == volunteer.id
    assert entry.void_reason == "duplicate entry"
    assert entry.restored_at is None
    assert entry.restored_by is None


async def test_void_then_restore_round_trip(db_session, donation, volunteer):
    ignored = {"restored_at", "restored_by"}
    before = {
        k: v for k, v in ledger_store.entry_snapshot(donation).items() if k not in ignored
    }
    audit_before = len(await _audit_for(db_session, donation.id))

    await LedgerStateMachine.void_entry(db_session, donation.id, "typo", volunteer.id)
    await LedgerStateMachine.restore_entry(db_session, donation.id, None, volunteer.id)

    entry = await ledger_store.get_entry(db_session, donation.id)
    after = {k: v for k, v in ledger_store.entry_snapshot(entry).items() if k not in ignored}
    assert after == before
    assert entry.restored_by == volunteer.id
    assert entry.restored_at is not None
    assert len(await _audit_for(db_session, donation.id)) == audit_before + 2


async def test_void_requires_reason(db_session, donation, volunteer):
    with pytest.raises(ValidationFailureError) as exc_info:
        await LedgerStateMachine.void_entry(db_session, donation.id, "   ", volunteer.id)
    assert "reason" in exc_info.value.fields

    entry = await ledger_store.get_entry(db_session, donation.id)
    assert entry.deleted_at is None


async def test_void_requires_actor(db_session, donation):
    with pytest.raises(UnauthenticatedError):
        await LedgerStateMachine.void_entry(db_session, donation.id, "reason", None)


async def test_void_missing_entry(db_session, volunteer):
    with pytest.raises(ResourceNotFoundError):
        await LedgerStateMachine.void_entry(db_session, 9999, "reason", volunteer.id)


async def test_void_twice_fails(db_session, donation, volunteer):
    await LedgerStateMachine.void_entry(db_session, donation.id, "first", volunteer.id)

    with pytest.raises(AlreadyVoidedError):
        await LedgerStateMachine.void_entry(db_session, donation.id, "second", volunteer.id)

    entry = await ledger_store.get_entry(db_session, donation.id)
    assert entry.void_reason == "first"


async def test_restore_active_entry_fails(db_session, donation, volunteer):
    with pytest.raises(AlreadyActiveError):
        await LedgerStateMachine.restore_entry(db_session, donation.id, None, volunteer.id)


async def test_second_conditional_update_loses(db_session, donation, volunteer):
    """Two voids racing on the same row: only one UPDATE matches."""
    from datetime import datetime, timezone

    now = datetime.now(timezone.utc)
    assert await ledger_store.mark_voided(db_session, donation.id, volunteer.id, "a", now) is True
    assert await ledger_store.mark_voided(db_session, donation.id, volunteer.id, "b", now) is False


async def test_void_writes_audit_event(db_session, donation, volunteer):
    await LedgerStateMachine.void_entry(db_session, donation.id, "wrong donor", volunteer.id)

    events = await _audit_for(db_session, donation.id)
    void_event = events[-1]
    assert void_event.action == AuditAction.VOID
    assert void_event.reason == "wrong donor"
    assert void_event.previous_data["deleted_at"] is None
    assert void_event.new_data["void_reason"] == "wrong donor"
    assert void_event.meta_data == {"module": "donations"}


async def test_non_inventory_void_writes_no_history(db_session, donation, volunteer):
    await LedgerStateMachine.void_entry(db_session, donation.id, "reason", volunteer.id)
    assert await _history_for(db_session, donation.id) == []


class TestInventoryBackedEntries:

    async def test_void_with_consumption_is_rejected(
        self, db_session, inventory_entry, cause, volunteer
    ):
        db_session.add(
            InventoryConsumption(
                ledger_entry_id=inventory_entry.id,
                cause_id=cause.id,
                quantity=Decimal("2"),
                unit_price_base=Decimal("50"),
                consumed_by=volunteer.id,
            )
        )
        await db_session.commit()

        with pytest.raises(InventoryAlreadyConsumedError):
            await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "oops", volunteer.id)

        entry = await ledger_store.get_entry(db_session, inventory_entry.id)
        assert entry.deleted_at is None
        assert await _history_for(db_session, inventory_entry.id) == []

    async def test_void_with_custody_transfer_is_rejected(
        self, db_session, inventory_entry, volunteer, other_volunteer
    ):
        db_session.add(
            CustodyTransfer(
                ledger_entry_id=inventory_entry.id,
                from_volunteer_id=volunteer.id,
                to_volunteer_id=other_volunteer.id,
                quantity=Decimal("1"),
                transferred_by=volunteer.id,
            )
        )
        await db_session.commit()

        with pytest.raises(InventoryAlreadyConsumedError):
            await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "oops", volunteer.id)

    async def test_void_appends_negative_delta(self, db_session, inventory_entry, volunteer):
        await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "returned", volunteer.id)

        rows = await _history_for(db_session, inventory_entry.id)
        assert len(rows) == 1
        assert rows[0].change_type == InventoryChangeType.VOID_REVERSAL
        assert rows[0].source == InventorySource.EXPENSE
        assert rows[0].delta_qty == Decimal("-10")
        assert rows[0].notes == "returned"

    async def test_restore_appends_positive_delta(self, db_session, inventory_entry, volunteer):
        await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "returned", volunteer.id)
        await LedgerStateMachine.restore_entry(db_session, inventory_entry.id, None, volunteer.id)

        rows = await _history_for(db_session, inventory_entry.id)
        assert len(rows) == 2
        assert rows[1].change_type == InventoryChangeType.RESTORED
        assert rows[1].delta_qty == Decimal("10")
        assert rows[1].notes == "Ledger entry restored"
        assert sum(row.delta_qty for row in rows) == 0

    async def test_cause_attributed_goods_skip_the_guard(
        self, db_session, make_entry, bank_account, cause, volunteer, mocker
    ):
        entry = await make_entry(
            LedgerEntryType.EXPENSE_BANK,
            amount="200",
            bank_account_id=bank_account.id,
            cause_id=cause.id,
            item_name="Tarpaulin",
            quantity=Decimal("4"),
            unit_price=Decimal("50"),
        )
        guard = mocker.patch(
            "ledger_backend.app.services.void_restore.has_downstream_consumption"
        )

        await LedgerStateMachine.void_entry(db_session, entry.id, "reason", volunteer.id)

        guard.assert_not_called()
        assert await _history_for(db_session, entry.id) == []

    async def test_guard_failure_blocks_void(self, db_session, inventory_entry, volunteer, mocker):
        mocker.patch(
            "ledger_backend.app.services.consumption_guard._count_references",
            side_effect=SQLAlchemyError("relation does not exist"),
        )

        with pytest.raises(GuardUnavailableError):
            await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "reason", volunteer.id)

        await db_session.rollback()
        entry = await ledger_store.get_entry(db_session, inventory_entry.id)
        assert entry.deleted_at is None

    async def test_consumption_recorded_after_check_still_blocks(
        self, db_session, inventory_entry, cause, volunteer, mocker
    ):
        """The UPDATE itself re-checks consumption."""
        db_session.add(
            InventoryConsumption(
                ledger_entry_id=inventory_entry.id,
                cause_id=cause.id,
                quantity=Decimal("1"),
                unit_price_base=Decimal("50"),
                consumed_by=volunteer.id,
            )
        )
        await db_session.commit()
        mocker.patch(
            "ledger_backend.app.services.void_restore.has_downstream_consumption",
            return_value=False,
        )

        with pytest.raises(InventoryAlreadyConsumedError):
            await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "reason", volunteer.id)

        entry = await ledger_store.get_entry(db_session, inventory_entry.id)
        assert entry.deleted_at is None


class TestBestEffortTrails:

    async def test_audit_failure_does_not_fail_void(
        self, db_session, inventory_entry, volunteer, mocker
    ):
        mocker.patch(
            "ledger_backend.app.services.audit.AuditEvent",
            side_effect=RuntimeError("audit store down"),
        )

        assert await LedgerStateMachine.void_entry(
            db_session, inventory_entry.id, "reason", volunteer.id
        ) is True

        entry = await ledger_store.get_entry(db_session, inventory_entry.id)
        assert entry.deleted_at is not None
        # History is independent of the audit write
        assert len(await _history_for(db_session, inventory_entry.id)) == 1

    async def test_history_failure_does_not_fail_restore(
        self, db_session, inventory_entry, volunteer, mocker
    ):
        await LedgerStateMachine.void_entry(db_session, inventory_entry.id, "reason", volunteer.id)
        mocker.patch(
            "ledger_backend.app.services.inventory_history.InventoryHistory",
            side_effect=RuntimeError("history table missing"),
        )

        assert await LedgerStateMachine.restore_entry(
            db_session, inventory_entry.id, "found it", volunteer.id
        ) is True

        entry = await ledger_store.get_entry(db_session, inventory_entry.id)
        assert entry.deleted_at is None
        assert entry.restored_by == volunteer.id

    async def test_audit_recorder_survives_dead_connection(self, mocker):
        session = mocker.AsyncMock()
        session.add = mocker.Mock()
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("server closed the connection"))
        session.rollback.side_effect = OperationalError("ROLLBACK", {}, Exception("server closed the connection"))

        result = await record_audit_event(
            session, action=AuditAction.VOID, table_name="ledger_entries", record_id=1, actor_id=1
        )

        assert result is None
        session.rollback.assert_awaited_once()
