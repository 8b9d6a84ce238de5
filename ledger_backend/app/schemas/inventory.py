"""
Inventory Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from ledger_backend.app.models.ledger_enums import InventoryChangeType, InventorySource


class InventoryHistoryItem(BaseModel):
    """One row of an item's quantity trail."""
    id: int
    ledger_entry_id: Optional[int]
    item_name: str
    change_type: InventoryChangeType
    source: InventorySource
    delta: float
    quantity_after: float
    notes: Optional[str]
    created_at: datetime


class OnHandResponse(BaseModel):
    item_name: str
    item_key: str
    quantity: float


class ConsumeInventoryRequest(BaseModel):
    """Schema for recording drive consumption of an inventory item."""
    ledger_entry_id: int
    cause_id: int
    quantity: Decimal = Field(..., gt=0)
    notes: str = Field(..., min_length=1)


class CustodyTransferRequest(BaseModel):
    ledger_entry_id: int
    from_volunteer_id: int
    to_volunteer_id: int
    quantity: Decimal = Field(..., gt=0)


class AdjustInventoryRequest(BaseModel):
    ledger_entry_id: int
    new_quantity: Decimal = Field(..., ge=0)
    reason: Optional[str] = None
