"""
Ledger Entry Store.

Creation, lookup and state-guarded updates of ledger entries.

Entries are the system of record for every money and goods movement. They
are never hard-deleted, and their void state only changes through
single-statement conditional updates so that two concurrent requests can
never both succeed.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, List

from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import ResourceNotFoundError, ValidationFailureError
from ledger_backend.app.models.bank_account import BankAccount
from ledger_backend.app.models.cause import Cause
from ledger_backend.app.models.custody_transfer import CustodyTransfer
from ledger_backend.app.models.donor import Donor
from ledger_backend.app.models.inventory_consumption import InventoryConsumption
from ledger_backend.app.models.inventory_history import InventoryHistory
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.ledger_enums import (
    AuditAction,
    DONATION_TYPES,
    EXPENSE_TYPES,
    INVENTORY_TYPES,
    InventoryChangeType,
    InventorySource,
    LedgerEntryType,
)
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.services.audit import record_audit_event
from ledger_backend.app.services.cache import invalidate_ledger_views
from ledger_backend.app.services.currency import resolve_currency_and_rate, to_base_amount
from ledger_backend.app.services.inventory_history import normalize_item_key, record_inventory_history
from ledger_backend.app.services.transparency import normalize_tx_ref

logger = logging.getLogger("ledger.store")

LEDGER_TABLE = "ledger_entries"
EXTERNAL_REF_MAX_LENGTH = 50

# Payload field -> (model, label) for reference checks
_REFERENCES = {
    "donor_id": (Donor, "Donor"),
    "bank_account_id": (BankAccount, "Bank account"),
    "from_user_id": (Volunteer, "Volunteer"),
    "to_user_id": (Volunteer, "Volunteer"),
    "custodian_id": (Volunteer, "Volunteer"),
    "cause_id": (Cause, "Cause"),
}


def is_inventory_backed(entry: LedgerEntry) -> bool:
    """Goods entries not attributed to a cause are tracked as inventory."""
    return (
        entry.item_name is not None
        and entry.cause_id is None
        and entry.type in INVENTORY_TYPES
    )


def ledger_module(entry_type: LedgerEntryType) -> str:
    if entry_type in DONATION_TYPES:
        return "donations"
    if entry_type in EXPENSE_TYPES:
        return "expenses"
    return "cash"


def inventory_source(entry_type: LedgerEntryType) -> InventorySource:
    if entry_type == LedgerEntryType.DONATION_IN_KIND:
        return InventorySource.DONATION
    return InventorySource.EXPENSE


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def entry_snapshot(entry: LedgerEntry) -> Dict[str, Any]:
    """Column values of an entry as a JSON-serializable dict."""
    return {
        column.key: _json_safe(getattr(entry, column.key))
        for column in LedgerEntry.__table__.columns
    }


def entry_volunteers(entry: LedgerEntry) -> Tuple[Optional[int], ...]:
    return (entry.from_user_id, entry.to_user_id, entry.custodian_id)


def normalize_external_ref(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    ref = normalize_tx_ref(raw)
    if not ref:
        return None
    if len(ref) > EXTERNAL_REF_MAX_LENGTH:
        raise ValidationFailureError(
            {"external_ref": [f"Reference must be at most {EXTERNAL_REF_MAX_LENGTH} characters"]}
        )
    return ref


async def get_entry(db: AsyncSession, entry_id: int) -> Optional[LedgerEntry]:
    """Fetch an entry, refreshing any stale copy held by the session."""
    result = await db.execute(
        select(LedgerEntry)
        .where(LedgerEntry.id == entry_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_entry(db: AsyncSession, entry_id: int) -> LedgerEntry:
    entry = await get_entry(db, entry_id)
    if entry is None:
        raise ResourceNotFoundError("Ledger entry", entry_id)
    return entry


async def find_by_external_ref(db: AsyncSession, external_ref: str) -> Optional[LedgerEntry]:
    ref = normalize_tx_ref(external_ref)
    if not ref:
        return None
    result = await db.execute(
        select(LedgerEntry)
        .where(LedgerEntry.external_ref == ref)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_entries(
    db: AsyncSession,
    types: Optional[Iterable[LedgerEntryType]] = None,
    include_voided: bool = False,
    volunteer_id: Optional[int] = None,
    bank_account_id: Optional[int] = None,
    limit: int = 200,
) -> List[LedgerEntry]:
    """List entries newest first."""
    query = select(LedgerEntry)

    if types:
        query = query.where(LedgerEntry.type.in_(list(types)))

    if not include_voided:
        query = query.where(LedgerEntry.deleted_at.is_(None))

    if volunteer_id is not None:
        query = query.where(
            or_(
                LedgerEntry.from_user_id == volunteer_id,
                LedgerEntry.to_user_id == volunteer_id,
                LedgerEntry.custodian_id == volunteer_id,
            )
        )

    if bank_account_id is not None:
        query = query.where(LedgerEntry.bank_account_id == bank_account_id)

    query = query.order_by(LedgerEntry.date.desc(), LedgerEntry.id.desc()).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def _check_references(db: AsyncSession, data: Dict[str, Any]):
    errors: Dict[str, List[str]] = {}
    for field, (model, label) in _REFERENCES.items():
        ref_id = data.get(field)
        if ref_id is None:
            continue
        result = await db.execute(select(model.id).where(model.id == ref_id))
        if result.scalar_one_or_none() is None:
            errors.setdefault(field, []).append(f"{label} {ref_id} does not exist")
    if errors:
        raise ValidationFailureError(errors)


async def _canonical_item_name(db: AsyncSession, item_name: str) -> str:
    """Reuse the first spelling already recorded for the same item key."""
    result = await db.execute(
        select(InventoryHistory.item_name)
        .where(InventoryHistory.item_key == normalize_item_key(item_name))
        .order_by(InventoryHistory.id)
        .limit(1)
    )
    existing = result.scalar_one_or_none()
    return existing if existing else item_name.strip()


async def create_entry(db: AsyncSession, payload, actor_id: int) -> Tuple[LedgerEntry, bool]:
    """
    Create a ledger entry from a validated per-type payload.

    Returns:
        (entry, created). ``created`` is False when an entry with the same
        external reference already existed and was returned instead.

    Raises:
        ValidationFailureError: Bad references, missing base currency or
            identical transfer parties
    """
    data = payload.model_dump()
    entry_type = LedgerEntryType(data.pop("type"))

    # 1. Idempotent ingestion by external reference
    external_ref = normalize_external_ref(data.pop("external_ref", None))
    if external_ref:
        existing = await find_by_external_ref(db, external_ref)
        if existing is not None:
            logger.info("Entry with reference %s already exists (id=%s)", external_ref, existing.id)
            return existing, False

    # 2. Party checks
    if entry_type == LedgerEntryType.CASH_TRANSFER and data["from_user_id"] == data["to_user_id"]:
        raise ValidationFailureError({"to_user_id": ["Cannot transfer to the same volunteer"]})
    await _check_references(db, data)

    # 3. Currency and amounts, rate frozen at write time
    currency_id, rate = await resolve_currency_and_rate(
        db, data.pop("currency_id", None), data.pop("exchange_rate_to_base", None)
    )
    amount = Decimal(str(payload.amount))
    data.pop("amount", None)

    item_name = data.pop("item_name", None)
    if item_name:
        item_name = await _canonical_item_name(db, item_name)

    entry = LedgerEntry(
        type=entry_type,
        amount=amount,
        currency_id=currency_id,
        exchange_rate_to_base=rate,
        amount_in_base_currency=to_base_amount(amount, rate),
        item_name=item_name,
        external_ref=external_ref,
        created_by=actor_id,
        **data,
    )
    db.add(entry)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if external_ref:
            # Lost an ingestion race on the same reference
            existing = await find_by_external_ref(db, external_ref)
            if existing is not None:
                return existing, False
        raise

    await db.refresh(entry)
    entry_id = entry.id
    snapshot = entry_snapshot(entry)
    volunteers = entry_volunteers(entry)
    inventory_backed = is_inventory_backed(entry)
    quantity = entry.quantity

    logger.info("Created ledger entry %s (%s)", entry_id, entry_type.value)

    # 4. Best-effort trails
    await record_audit_event(
        db,
        action=AuditAction.CREATE,
        table_name=LEDGER_TABLE,
        record_id=entry_id,
        actor_id=actor_id,
        new_data=snapshot,
        metadata={"module": ledger_module(entry_type)},
    )
    if inventory_backed:
        await record_inventory_history(
            db,
            item_name=item_name,
            change_type=InventoryChangeType.RECEIVED,
            source=inventory_source(entry_type),
            delta_qty=quantity,
            actor_id=actor_id,
            ledger_entry_id=entry_id,
            reference_table=LEDGER_TABLE,
            reference_id=entry_id,
        )

    await invalidate_ledger_views(*volunteers)
    return await require_entry(db, entry_id), True


async def mark_voided(
    db: AsyncSession,
    entry_id: int,
    actor_id: int,
    reason: str,
    voided_at: datetime,
    require_unconsumed: bool = False,
) -> bool:
    """
    Void an active entry in one conditional UPDATE.

    Returns:
        True if the entry transitioned; False if it was missing, already
        voided or (with ``require_unconsumed``) had downstream consumption.
    """
    stmt = update(LedgerEntry).where(
        LedgerEntry.id == entry_id,
        LedgerEntry.deleted_at.is_(None),
    )
    if require_unconsumed:
        stmt = stmt.where(
            ~select(InventoryConsumption.id)
            .where(InventoryConsumption.ledger_entry_id == entry_id)
            .exists(),
            ~select(CustodyTransfer.id)
            .where(CustodyTransfer.ledger_entry_id == entry_id)
            .exists(),
        )
    stmt = stmt.values(
        deleted_at=voided_at,
        voided_at=voided_at,
        voided_by=actor_id,
        void_reason=reason,
        restored_at=None,
        restored_by=None,
        # State transitions carry their own timestamps
        updated_at=LedgerEntry.updated_at,
    ).execution_options(synchronize_session=False)

    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount == 1


async def mark_restored(
    db: AsyncSession,
    entry_id: int,
    actor_id: int,
    restored_at: datetime,
) -> bool:
    """Restore a voided entry in one conditional UPDATE."""
    stmt = (
        update(LedgerEntry)
        .where(LedgerEntry.id == entry_id, LedgerEntry.deleted_at.is_not(None))
        .values(
            deleted_at=None,
            voided_at=None,
            voided_by=None,
            void_reason=None,
            restored_at=restored_at,
            restored_by=actor_id,
            updated_at=LedgerEntry.updated_at,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount == 1
