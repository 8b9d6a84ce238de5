"""
Audit Event Database Model.

Append-only log of every state-changing action against the ledger.
Rows are inserted once and never updated or deleted.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base
from ledger_backend.app.models.ledger_enums import AuditAction


class AuditEvent(Base):
    """
    Audit event model.

    Actions logged:
    - create / update
    - void / restore
    - consume / transfer / adjust (inventory)
    """
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)

    # What was touched
    table_name = Column(String(100), nullable=False, index=True)
    record_id = Column(Integer, nullable=True, index=True)

    # What action was performed
    action = Column(Enum(AuditAction), nullable=False, index=True)
    reason = Column(Text, nullable=True)

    # Snapshots
    previous_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)

    # Additional context (originating module etc.)
    meta_data = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditEvent(id={self.id}, action='{self.action.value}', table='{self.table_name}', record={self.record_id})>"
