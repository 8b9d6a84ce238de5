"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from ledger_backend.app.api.v1.endpoints import (
    ledger, balances, inventory, reference, transparency
)

router = APIRouter()

# Ledger entries, void/restore, audit trail
router.include_router(ledger.router)

# Derived balances
router.include_router(balances.router)

# Inventory trail and operations
router.include_router(inventory.router)

# Currencies, bank accounts, donors, causes
router.include_router(reference.router)

# Public donation verification (no auth)
router.include_router(transparency.router)
