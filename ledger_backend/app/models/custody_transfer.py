"""
Custody Transfer Database Model.

Movement of goods from one volunteer to another. Like consumption, any row
here locks the originating ledger entry against voiding.
"""

from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base


class CustodyTransfer(Base):
    __tablename__ = "custody_transfers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    ledger_entry_id = Column(Integer, ForeignKey("ledger_entries.id"), nullable=False, index=True)
    from_volunteer_id = Column(Integer, ForeignKey("volunteers.id"), nullable=False)
    to_volunteer_id = Column(Integer, ForeignKey("volunteers.id"), nullable=False)

    quantity = Column(Numeric(14, 3), nullable=False)

    transferred_by = Column(Integer, ForeignKey("volunteers.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<CustodyTransfer(id={self.id}, entry={self.ledger_entry_id}, qty={self.quantity})>"
