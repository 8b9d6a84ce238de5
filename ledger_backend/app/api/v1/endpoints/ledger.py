"""
Ledger API Endpoints.

Entry creation and lookup, void/restore transitions and the per-entry
audit trail. All routes require an authenticated volunteer.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.dependencies import get_current_user
from ledger_backend.app.core.exceptions import ResourceNotFoundError
from ledger_backend.app.db.session import get_db
from ledger_backend.app.models.ledger_enums import LedgerEntryType
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.schemas.ledger import (
    ActionResult,
    AuditEventResponse,
    LedgerEntryCreate,
    LedgerEntryResponse,
    RestoreEntryRequest,
    VoidEntryRequest,
)
from ledger_backend.app.services import ledger_store
from ledger_backend.app.services.audit import get_audit_trail
from ledger_backend.app.services.void_restore import LedgerStateMachine

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.post("/entries", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    response: Response,
    payload: LedgerEntryCreate = Body(...),
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a ledger entry.

    When ``external_ref`` matches an existing entry, that entry is returned
    with 200 instead of creating a duplicate.
    """
    entry, created = await ledger_store.create_entry(db, payload, actor_id=current_user.id)
    if not created:
        response.status_code = status.HTTP_200_OK
    return LedgerEntryResponse.model_validate(entry)


@router.get("/entries", response_model=List[LedgerEntryResponse])
async def list_entries(
    type: Optional[List[LedgerEntryType]] = Query(None, description="Filter by entry type"),
    include_voided: bool = Query(False),
    volunteer_id: Optional[int] = Query(None),
    bank_account_id: Optional[int] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    entries = await ledger_store.list_entries(
        db,
        types=type,
        include_voided=include_voided,
        volunteer_id=volunteer_id,
        bank_account_id=bank_account_id,
        limit=limit,
    )
    return [LedgerEntryResponse.model_validate(e) for e in entries]


@router.get("/entries/by-ref/{external_ref}", response_model=LedgerEntryResponse)
async def get_entry_by_reference(
    external_ref: str,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Look up an entry by its upstream transaction reference."""
    entry = await ledger_store.find_by_external_ref(db, external_ref)
    if entry is None:
        raise ResourceNotFoundError("Ledger entry", external_ref)
    return LedgerEntryResponse.model_validate(entry)


@router.get("/entries/{entry_id}", response_model=LedgerEntryResponse)
async def get_entry(
    entry_id: int,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    entry = await ledger_store.require_entry(db, entry_id)
    return LedgerEntryResponse.model_validate(entry)


@router.post("/entries/{entry_id}/void", response_model=ActionResult)
async def void_entry(
    entry_id: int,
    request: VoidEntryRequest,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Void an entry with a mandatory reason.

    Inventory-backed entries whose goods were consumed or transferred
    cannot be voided (409).
    """
    await LedgerStateMachine.void_entry(
        db,
        entry_id,
        reason=request.reason,
        actor_id=current_user.id,
        volunteer_id=request.volunteer_id,
    )
    return ActionResult()


@router.post("/entries/{entry_id}/restore", response_model=ActionResult)
async def restore_entry(
    entry_id: int,
    request: Optional[RestoreEntryRequest] = None,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Reinstate a voided entry."""
    request = request or RestoreEntryRequest()
    await LedgerStateMachine.restore_entry(
        db,
        entry_id,
        reason=request.reason,
        actor_id=current_user.id,
        volunteer_id=request.volunteer_id,
    )
    return ActionResult()


@router.get("/entries/{entry_id}/audit", response_model=List[AuditEventResponse])
async def get_entry_audit_trail(
    entry_id: int,
    limit: int = Query(100, ge=1, le=500),
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Audit events for an entry, oldest first."""
    await ledger_store.require_entry(db, entry_id)
    events = await get_audit_trail(
        db, table_name=ledger_store.LEDGER_TABLE, record_id=entry_id, limit=limit
    )
    return [AuditEventResponse.model_validate(e) for e in events]
