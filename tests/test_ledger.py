from datetime import datetime

import pytest
from sqlalchemy import select

from coworks.core.errors import InsufficientBalanceError, NotFoundError, ValidationError
from coworks.models.coins import CoinTransaction, CoinTransactionType
from coworks.models.customer import Customer


async def history(db, customer_id):
    rows = await db.execute(
        select(CoinTransaction).where(CoinTransaction.customer_id == customer_id).order_by(CoinTransaction.id)
    )
    return list(rows.scalars().all())


@pytest.mark.asyncio
async def test_debit_and_credit_write_signed_rows(db, ledger, customer):
    await ledger.debit(db, customer.id, 120, booking_id=7, booking_type="meeting", description="Meeting")
    await ledger.credit(db, customer.id, 20, description="Goodwill")
    await db.commit()

    assert await ledger.get_balance(db, customer.id) == 400
    rows = await history(db, customer.id)
    assert [(r.amount, r.transaction_type) for r in rows] == [
        (-120, CoinTransactionType.DEBIT),
        (20, CoinTransactionType.CREDIT),
    ]
    assert rows[0].booking_id == 7
    assert rows[0].booking_type == "meeting"


@pytest.mark.asyncio
async def test_insufficient_balance_changes_nothing(db, ledger, make_customer):
    customer = await make_customer(balance=30)

    with pytest.raises(InsufficientBalanceError) as exc:
        await ledger.debit(db, customer.id, 50)

    assert exc.value.details == {"available": 30, "required": 50, "needed": 20}
    assert await ledger.get_balance(db, customer.id) == 30
    assert await history(db, customer.id) == []


@pytest.mark.asyncio
async def test_sequence_of_debits_never_goes_negative(db, ledger, make_customer):
    customer = await make_customer(balance=100)
    results = []
    for amount in (40, 40, 40, 20):
        try:
            await ledger.debit(db, customer.id, amount)
            results.append(True)
        except InsufficientBalanceError:
            results.append(False)
    await db.commit()

    assert results == [True, True, False, True]
    assert await ledger.get_balance(db, customer.id) == 0
    assert sum(r.amount for r in await history(db, customer.id)) == -100


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5])
async def test_non_positive_amounts_are_rejected(db, ledger, customer, amount):
    with pytest.raises(ValidationError):
        await ledger.debit(db, customer.id, amount)
    with pytest.raises(ValidationError):
        await ledger.credit(db, customer.id, amount)


@pytest.mark.asyncio
async def test_unknown_customer(db, ledger):
    with pytest.raises(NotFoundError):
        await ledger.debit(db, 999, 10)
    with pytest.raises(NotFoundError):
        await ledger.get_balance(db, 999)


@pytest.mark.asyncio
async def test_monthly_reset_tops_up_once_per_month(db, ledger, make_customer):
    customer = await make_customer(balance=200, last_reset=datetime(2030, 1, 15))

    assert not await ledger.reset_if_due(db, customer.id, now=datetime(2030, 1, 31, 23, 59))
    assert await ledger.get_balance(db, customer.id) == 200

    assert await ledger.reset_if_due(db, customer.id, now=datetime(2030, 2, 1, 0, 5))
    await db.commit()
    assert await ledger.get_balance(db, customer.id) == 1196

    rows = await history(db, customer.id)
    assert [(r.amount, r.transaction_type) for r in rows] == [(996, CoinTransactionType.RESET)]

    assert not await ledger.reset_if_due(db, customer.id, now=datetime(2030, 2, 20))


@pytest.mark.asyncio
async def test_reset_compares_year_as_well_as_month(db, ledger, make_customer):
    customer = await make_customer(balance=10, last_reset=datetime(2029, 3, 1))

    assert await ledger.reset_if_due(db, customer.id, now=datetime(2030, 3, 2))
    refreshed = await db.get(Customer, customer.id)
    assert refreshed.coins_balance == 1196
    assert refreshed.coins_last_reset == datetime(2030, 3, 2)


@pytest.mark.asyncio
async def test_transactions_are_newest_first_and_capped(db, ledger, customer):
    for _ in range(5):
        await ledger.debit(db, customer.id, 1)
    await db.commit()

    latest = await ledger.transactions(db, customer.id, limit=3)
    assert len(latest) == 3
    assert latest[0].id > latest[1].id > latest[2].id
    assert len(await ledger.transactions(db, customer.id, limit=0)) == 1
    assert len(await ledger.transactions(db, customer.id, limit=500)) == 5
