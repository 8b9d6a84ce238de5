"""
Ledger enumerations.

Entry types, audit actions and inventory history classifiers.
"""

import enum


class LedgerEntryType(str, enum.Enum):
    """Ledger entry type enumeration."""
    DONATION_BANK = "donation_bank"  # Donor -> bank account
    DONATION_CASH = "donation_cash"  # Donor -> volunteer (cash in hand)
    DONATION_IN_KIND = "donation_in_kind"  # Donor -> goods held by a custodian
    CASH_TRANSFER = "cash_transfer"  # Volunteer -> volunteer
    CASH_DEPOSIT = "cash_deposit"  # Volunteer -> bank account
    BANK_WITHDRAWAL = "bank_withdrawal"  # Bank account -> volunteer
    EXPENSE_BANK = "expense_bank"  # Paid from a bank account
    EXPENSE_CASH = "expense_cash"  # Paid by a volunteer in cash


DONATION_TYPES = (
    LedgerEntryType.DONATION_BANK,
    LedgerEntryType.DONATION_CASH,
    LedgerEntryType.DONATION_IN_KIND,
)

EXPENSE_TYPES = (
    LedgerEntryType.EXPENSE_BANK,
    LedgerEntryType.EXPENSE_CASH,
)

CASH_TYPES = (
    LedgerEntryType.DONATION_CASH,
    LedgerEntryType.CASH_TRANSFER,
    LedgerEntryType.CASH_DEPOSIT,
    LedgerEntryType.BANK_WITHDRAWAL,
    LedgerEntryType.EXPENSE_CASH,
)

# Types that can carry physical goods
INVENTORY_TYPES = (
    LedgerEntryType.EXPENSE_BANK,
    LedgerEntryType.EXPENSE_CASH,
    LedgerEntryType.DONATION_IN_KIND,
)


class AuditAction(str, enum.Enum):
    """Audit event action enumeration."""
    CREATE = "create"
    UPDATE = "update"
    VOID = "void"
    RESTORE = "restore"
    CONSUME = "consume"
    TRANSFER = "transfer"
    ADJUST = "adjust"


class InventoryChangeType(str, enum.Enum):
    """Inventory history change type enumeration."""
    RECEIVED = "received"
    USED = "used"
    ADJUSTED = "adjusted"
    VOID_REVERSAL = "void_reversal"
    RESTORED = "restored"
    TRANSFER = "transfer"


class InventorySource(str, enum.Enum):
    """Where an inventory movement originated."""
    DONATION = "donation"
    EXPENSE = "expense"
    DRIVE_CONSUMPTION = "drive_consumption"
    MANUAL = "manual"


class CauseType(str, enum.Enum):
    """Cause type enumeration."""
    DRIVE = "drive"
    GENERAL = "general"
