"""
Balance aggregator tests.

Balances come from active entries only and are re-expressed in the account's
own currency using its current rate.
"""

import datetime as dt
from decimal import Decimal

from ledger_backend.app.models.bank_account import BankAccount
from ledger_backend.app.models.ledger_enums import LedgerEntryType
from ledger_backend.app.services import inventory as inventory_service
from ledger_backend.app.services.balances import (
    compute_bank_account_balances,
    get_bank_account_balances,
    get_volunteer_cash_balances,
    native_balance,
)
from ledger_backend.app.services.cache import VIEW_KEY_PREFIX, CacheView
from ledger_backend.app.services.void_restore import LedgerStateMachine


def test_native_balance_formula():
    assert native_balance(Decimal("100"), Decimal("300"), Decimal("600"), Decimal("0")) == Decimal("102.00")


def test_native_balance_bad_rate_treated_as_one():
    assert native_balance(Decimal("10"), Decimal("0"), Decimal("5"), Decimal("3")) == Decimal("12.00")
    assert native_balance(Decimal("10"), None, Decimal("5"), Decimal("3")) == Decimal("12.00")


async def test_voided_deposits_are_excluded(db_session, make_entry, bank_account, donor, volunteer):
    await make_entry(
        LedgerEntryType.DONATION_BANK, amount="500", donor_id=donor.id, bank_account_id=bank_account.id
    )
    await make_entry(
        LedgerEntryType.DONATION_BANK,
        amount="2000",
        donor_id=donor.id,
        bank_account_id=bank_account.id,
        deleted_at=dt.datetime(2024, 9, 2),
        voided_at=dt.datetime(2024, 9, 2),
        voided_by=volunteer.id,
        void_reason="bounced",
    )

    [balance] = await compute_bank_account_balances(db_session)

    assert balance.native_balance == 1500
    assert balance.total_deposits == 500
    assert balance.total_withdrawals == 0


async def test_foreign_currency_account(db_session, make_entry, foreign_currency, donor):
    account = BankAccount(
        account_name="USD Reserve",
        bank_name="HBL",
        currency_id=foreign_currency.id,
        opening_balance=Decimal("100"),
    )
    db_session.add(account)
    await db_session.commit()

    await make_entry(
        LedgerEntryType.DONATION_BANK,
        amount="2",
        rate="300",
        currency_id=foreign_currency.id,
        donor_id=donor.id,
        bank_account_id=account.id,
    )

    [balance] = await compute_bank_account_balances(db_session)

    assert balance.native_balance == 102
    assert balance.currency_code == "USD"
    assert balance.currency_symbol == "$"


async def test_withdrawals_reduce_balance(db_session, make_entry, bank_account, volunteer, other_volunteer):
    await make_entry(
        LedgerEntryType.CASH_DEPOSIT, amount="250", from_user_id=volunteer.id, bank_account_id=bank_account.id
    )
    await make_entry(
        LedgerEntryType.EXPENSE_BANK,
        amount="100",
        bank_account_id=bank_account.id,
        item_name="Medicine",
        quantity=Decimal("1"),
        unit_price=Decimal("100"),
    )
    await make_entry(
        LedgerEntryType.BANK_WITHDRAWAL, amount="50", bank_account_id=bank_account.id, to_user_id=other_volunteer.id
    )

    [balance] = await compute_bank_account_balances(db_session)

    assert balance.total_deposits == 250
    assert balance.total_withdrawals == 150
    assert balance.native_balance == 1100


async def test_cached_view_is_invalidated_by_void(db_session, make_entry, bank_account, donor, volunteer, mock_redis):
    entry = await make_entry(
        LedgerEntryType.DONATION_BANK, amount="500", donor_id=donor.id, bank_account_id=bank_account.id
    )

    [before] = await get_bank_account_balances(db_session)
    assert before.native_balance == 1500
    assert f"{VIEW_KEY_PREFIX}{CacheView.BANK_ACCOUNTS}" in mock_redis.store

    await LedgerStateMachine.void_entry(db_session, entry.id, "bounced", volunteer.id)
    assert f"{VIEW_KEY_PREFIX}{CacheView.BANK_ACCOUNTS}" not in mock_redis.store

    [after] = await get_bank_account_balances(db_session)
    assert after.native_balance == 1000


async def test_cached_view_is_invalidated_by_inventory_adjustment(db_session, inventory_entry, volunteer, mock_redis):
    [before] = await get_bank_account_balances(db_session)
    assert before.native_balance == 500

    await inventory_service.adjust_inventory(db_session, inventory_entry.id, Decimal("7"), volunteer.id)
    assert f"{VIEW_KEY_PREFIX}{CacheView.BANK_ACCOUNTS}" not in mock_redis.store

    [after] = await get_bank_account_balances(db_session)
    assert after.native_balance == 650


async def test_volunteer_cash_balances(db_session, make_entry, volunteer, other_volunteer, donor, bank_account):
    # Asha receives 1000 cash, hands 300 to Bilal, deposits 200, spends 100
    await make_entry(LedgerEntryType.DONATION_CASH, amount="1000", donor_id=donor.id, to_user_id=volunteer.id)
    await make_entry(
        LedgerEntryType.CASH_TRANSFER, amount="300", from_user_id=volunteer.id, to_user_id=other_volunteer.id
    )
    await make_entry(
        LedgerEntryType.CASH_DEPOSIT, amount="200", from_user_id=volunteer.id, bank_account_id=bank_account.id
    )
    await make_entry(
        LedgerEntryType.EXPENSE_CASH,
        amount="100",
        from_user_id=volunteer.id,
        item_name="Soap",
        quantity=Decimal("10"),
        unit_price=Decimal("10"),
    )
    # Bilal withdraws 50 from the bank
    await make_entry(
        LedgerEntryType.BANK_WITHDRAWAL, amount="50", bank_account_id=bank_account.id, to_user_id=other_volunteer.id
    )

    balances = {b.volunteer_id: b.balance for b in await get_volunteer_cash_balances(db_session)}

    assert balances[volunteer.id] == 400
    assert balances[other_volunteer.id] == 350
