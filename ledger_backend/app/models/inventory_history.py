"""
Inventory History Database Model.

Quantity-delta trail per inventory line. On-hand quantity for an item is the
sum of ``delta_qty`` over its ``item_key``.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum, Numeric
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base
from ledger_backend.app.models.ledger_enums import InventoryChangeType, InventorySource


class InventoryHistory(Base):
    __tablename__ = "inventory_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    actor_id = Column(Integer, nullable=True)

    # Normalized key groups spelling variants; item_name keeps the display form
    item_key = Column(String(200), nullable=False, index=True)
    item_name = Column(String(200), nullable=False)

    change_type = Column(Enum(InventoryChangeType), nullable=False)
    source = Column(Enum(InventorySource), nullable=False)
    delta_qty = Column(Numeric(14, 3), nullable=False)

    ledger_entry_id = Column(Integer, nullable=True, index=True)
    reference_table = Column(String(100), nullable=True)
    reference_id = Column(Integer, nullable=True)

    notes = Column(Text, nullable=True)
    meta_data = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<InventoryHistory(id={self.id}, item='{self.item_key}', delta={self.delta_qty})>"
