"""
Inventory API Endpoints.

History trail, on-hand quantities and the consume / transfer / adjust
operations on inventory-backed entries.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.dependencies import get_current_user
from ledger_backend.app.db.session import get_db
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.schemas.inventory import (
    AdjustInventoryRequest,
    ConsumeInventoryRequest,
    CustodyTransferRequest,
    InventoryHistoryItem,
    OnHandResponse,
)
from ledger_backend.app.schemas.ledger import ActionResult
from ledger_backend.app.services import inventory as inventory_service
from ledger_backend.app.services.inventory_history import (
    get_inventory_history,
    get_on_hand_quantity,
    normalize_item_key,
)

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("/history", response_model=List[InventoryHistoryItem])
async def inventory_history(
    ledger_entry_id: Optional[int] = Query(None),
    item_name: Optional[str] = Query(None, max_length=200),
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Quantity trail, newest first (max 100 rows).

    Returns an empty list when neither filter is given.
    """
    rows = await get_inventory_history(db, ledger_entry_id=ledger_entry_id, item_name=item_name)
    return [InventoryHistoryItem(**row) for row in rows]


@router.get("/on-hand", response_model=OnHandResponse)
async def on_hand(
    item_name: str = Query(..., min_length=1, max_length=200),
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    quantity = await get_on_hand_quantity(db, item_name)
    return OnHandResponse(
        item_name=item_name.strip(),
        item_key=normalize_item_key(item_name),
        quantity=float(quantity),
    )


@router.post("/consume", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def consume(
    request: ConsumeInventoryRequest,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Record goods used by a drive."""
    await inventory_service.consume_inventory(
        db,
        ledger_entry_id=request.ledger_entry_id,
        cause_id=request.cause_id,
        quantity=request.quantity,
        notes=request.notes,
        actor_id=current_user.id,
    )
    return ActionResult()


@router.post("/transfer", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def transfer(
    request: CustodyTransferRequest,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await inventory_service.transfer_custody(
        db,
        ledger_entry_id=request.ledger_entry_id,
        from_volunteer_id=request.from_volunteer_id,
        to_volunteer_id=request.to_volunteer_id,
        quantity=request.quantity,
        actor_id=current_user.id,
    )
    return ActionResult()


@router.post("/adjust", response_model=ActionResult)
async def adjust(
    request: AdjustInventoryRequest,
    current_user: Volunteer = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Correct the quantity recorded on an inventory-backed entry."""
    await inventory_service.adjust_inventory(
        db,
        ledger_entry_id=request.ledger_entry_id,
        new_quantity=request.new_quantity,
        actor_id=current_user.id,
        reason=request.reason,
    )
    return ActionResult()
