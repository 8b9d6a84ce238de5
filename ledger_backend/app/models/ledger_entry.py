"""
Ledger Entry database model.

The system of record for every financial or inventory-affecting event.
Entries are never hard-deleted; void/restore toggles ``deleted_at``.
"""

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Numeric, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base
from ledger_backend.app.models.ledger_enums import LedgerEntryType


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Which party columns are populated depends on ``type``:
    - donation_bank: donor_id, bank_account_id
    - donation_cash: donor_id, to_user_id
    - donation_in_kind: donor_id, custodian_id, item_name, quantity
    - cash_transfer: from_user_id, to_user_id
    - cash_deposit: from_user_id, bank_account_id
    - bank_withdrawal: bank_account_id, to_user_id
    - expense_bank: bank_account_id, item_name, quantity, unit_price
    - expense_cash: from_user_id, item_name, quantity, unit_price

    Active: deleted_at is NULL. Voided: deleted_at, voided_at, voided_by and
    void_reason set, restore columns NULL.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    type = Column(Enum(LedgerEntryType), nullable=False, index=True)

    # Financials (rate captured at write time)
    amount = Column(Numeric(18, 4), nullable=False, default=0)
    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False, index=True)
    exchange_rate_to_base = Column(Numeric(18, 6), nullable=False, default=1)
    amount_in_base_currency = Column(Numeric(18, 4), nullable=False, default=0)

    date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)

    # Attribution
    cause_id = Column(Integer, ForeignKey("causes.id"), nullable=True, index=True)

    # Goods
    item_name = Column(String(200), nullable=True)
    quantity = Column(Numeric(14, 3), nullable=True)
    unit_price = Column(Numeric(18, 4), nullable=True)

    # Parties
    donor_id = Column(Integer, ForeignKey("donors.id"), nullable=True, index=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True, index=True)
    from_user_id = Column(Integer, ForeignKey("volunteers.id"), nullable=True, index=True)
    to_user_id = Column(Integer, ForeignKey("volunteers.id"), nullable=True, index=True)
    custodian_id = Column(Integer, ForeignKey("volunteers.id"), nullable=True)

    # Upstream reference (bank transaction id from email ingestion)
    external_ref = Column(String(50), unique=True, nullable=True, index=True)

    created_by = Column(Integer, ForeignKey("volunteers.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Soft delete
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    voided_by = Column(Integer, ForeignKey("volunteers.id"), nullable=True)
    void_reason = Column(Text, nullable=True)
    restored_at = Column(DateTime(timezone=True), nullable=True)
    restored_by = Column(Integer, ForeignKey("volunteers.id"), nullable=True)

    currency = relationship("Currency", lazy="joined")

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, type='{self.type.value}', amount={self.amount})>"
