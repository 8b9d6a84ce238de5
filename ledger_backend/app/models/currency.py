"""
Currency database model.

Static reference data: code, symbol and the configured rate to the base
reporting currency.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base


class Currency(Base):
    """
    Currency model.

    ``exchange_rate_to_base`` is the current configured rate. Ledger entries
    copy the rate in effect when they are written, so changing it here never
    re-values history.
    """
    __tablename__ = "currencies"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(10), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    symbol = Column(String(10), nullable=False)

    exchange_rate_to_base = Column(Numeric(18, 6), nullable=False, default=1)
    is_base = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Currency(id={self.id}, code='{self.code}', rate={self.exchange_rate_to_base})>"
