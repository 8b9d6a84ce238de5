"""
Cause database model.

A cause is either a dated relief drive or the general fund.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, Enum
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base
from ledger_backend.app.models.ledger_enums import CauseType


class Cause(Base):
    __tablename__ = "causes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    type = Column(Enum(CauseType), default=CauseType.DRIVE, nullable=False)
    date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Cause(id={self.id}, name='{self.name}', type='{self.type.value}')>"
