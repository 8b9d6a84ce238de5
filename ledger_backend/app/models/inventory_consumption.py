"""
Inventory Consumption Database Model.

Quantity of an inventory-backed entry used up by a drive. Any row here locks
the originating ledger entry against voiding.
"""

from sqlalchemy import Column, Integer, Text, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base


class InventoryConsumption(Base):
    __tablename__ = "inventory_consumption"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    ledger_entry_id = Column(Integer, ForeignKey("ledger_entries.id"), nullable=False, index=True)
    cause_id = Column(Integer, ForeignKey("causes.id"), nullable=False, index=True)

    quantity = Column(Numeric(14, 3), nullable=False)
    unit_price_base = Column(Numeric(18, 4), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    consumed_by = Column(Integer, ForeignKey("volunteers.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<InventoryConsumption(id={self.id}, entry={self.ledger_entry_id}, qty={self.quantity})>"
