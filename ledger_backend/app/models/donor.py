"""
Donor database model.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base


class Donor(Base):
    __tablename__ = "donors"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Donor(id={self.id}, name='{self.name}')>"
