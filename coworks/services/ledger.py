from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.core.errors import InsufficientBalanceError, NotFoundError, ValidationError
from coworks.models.coins import CoinTransaction, CoinTransactionType
from coworks.models.customer import Customer

logger = logging.getLogger(__name__)


class LedgerStore:
    """Owns every change to ``Customer.coins_balance``.

    Methods lock the customer row and flush, they never commit: the caller's
    transaction decides whether the change and its audit row persist.
    """

    def __init__(self, max_coins: int):
        self.max_coins = max_coins

    async def _locked_customer(self, db: AsyncSession, customer_id: int) -> Customer:
        # sqlite ignores FOR UPDATE, see db.use_immediate_transactions.
        # populate_existing re-reads a customer the session already holds
        customer = (
            await db.execute(
                select(Customer)
                .where(Customer.id == customer_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if not customer:
            raise NotFoundError("Customer not found")
        return customer

    async def get_balance(self, db: AsyncSession, customer_id: int) -> int:
        customer = (await db.execute(select(Customer).where(Customer.id == customer_id))).scalar_one_or_none()
        if not customer:
            raise NotFoundError("Customer not found")
        return customer.coins_balance

    async def debit(
        self,
        db: AsyncSession,
        customer_id: int,
        amount: int,
        booking_id: int | None = None,
        booking_type: str | None = None,
        description: str | None = None,
    ) -> CoinTransaction:
        if amount <= 0:
            raise ValidationError("Debit amount must be a positive number of coins")
        customer = await self._locked_customer(db, customer_id)
        if customer.coins_balance < amount:
            raise InsufficientBalanceError(customer.coins_balance, amount)
        customer.coins_balance -= amount
        tx = CoinTransaction(
            customer_id=customer_id,
            amount=-amount,
            transaction_type=CoinTransactionType.DEBIT,
            booking_id=booking_id,
            booking_type=booking_type,
            description=description,
        )
        db.add(tx)
        await db.flush()
        logger.info("Debited %s coins from customer %s (balance %s)", amount, customer_id, customer.coins_balance)
        return tx

    async def credit(
        self,
        db: AsyncSession,
        customer_id: int,
        amount: int,
        booking_id: int | None = None,
        booking_type: str | None = None,
        description: str | None = None,
    ) -> CoinTransaction:
        if amount <= 0:
            raise ValidationError("Credit amount must be a positive number of coins")
        customer = await self._locked_customer(db, customer_id)
        customer.coins_balance += amount
        tx = CoinTransaction(
            customer_id=customer_id,
            amount=amount,
            transaction_type=CoinTransactionType.CREDIT,
            booking_id=booking_id,
            booking_type=booking_type,
            description=description,
        )
        db.add(tx)
        await db.flush()
        logger.info("Credited %s coins to customer %s (balance %s)", amount, customer_id, customer.coins_balance)
        return tx

    async def reset_if_due(self, db: AsyncSession, customer_id: int, now: datetime | None = None) -> bool:
        """Refill the balance to ``max_coins`` once per calendar month.

        Returns True when a reset happened.
        """
        now = now or datetime.utcnow()
        customer = await self._locked_customer(db, customer_id)
        last = customer.coins_last_reset
        if last is not None and (last.year, last.month) == (now.year, now.month):
            return False

        delta = self.max_coins - customer.coins_balance
        customer.coins_balance = self.max_coins
        customer.coins_last_reset = now
        if delta:
            db.add(CoinTransaction(
                customer_id=customer_id,
                amount=delta,
                transaction_type=CoinTransactionType.RESET,
                description=f"Monthly reset to {self.max_coins} coins",
            ))
        await db.flush()
        logger.info("Reset coins for customer %s to %s", customer_id, self.max_coins)
        return True

    async def transactions(self, db: AsyncSession, customer_id: int, limit: int = 10) -> list[CoinTransaction]:
        limit = max(1, min(limit, 100))
        rows = await db.execute(
            select(CoinTransaction)
            .where(CoinTransaction.customer_id == customer_id)
            .order_by(CoinTransaction.id.desc())
            .limit(limit)
        )
        return list(rows.scalars().all())
