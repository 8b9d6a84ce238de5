"""
Bank Account database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base


class BankAccount(Base):
    """
    Bank account model.

    Only the opening balance is stored (in the account's own currency).
    The current balance is always derived from active ledger entries.
    """
    __tablename__ = "bank_accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    account_name = Column(String(150), nullable=False)
    bank_name = Column(String(150), nullable=False)
    account_number = Column(String(50), nullable=True)

    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False, index=True)
    opening_balance = Column(Numeric(18, 4), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    currency = relationship("Currency", lazy="joined")

    def __repr__(self):
        return f"<BankAccount(id={self.id}, name='{self.account_name}')>"
