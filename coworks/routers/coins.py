from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.core.errors import envelope
from coworks.core.settings import settings
from coworks.db import get_db
from coworks.deps import get_ledger, require_complete_profile
from coworks.models.customer import Customer
from coworks.services.ledger import LedgerStore

router = APIRouter(prefix="/api/coins", tags=["coins"])


@router.get("")
async def my_coins(
    limit: int = Query(default=settings.COINS_HISTORY_LIMIT, ge=1),
    customer: Customer = Depends(require_complete_profile),
    db: AsyncSession = Depends(get_db),
    ledger: LedgerStore = Depends(get_ledger),
):
    await ledger.reset_if_due(db, customer.id)
    await db.commit()
    transactions = await ledger.transactions(db, customer.id, limit)
    return envelope(
        {
            "balance": customer.coins_balance,
            "last_reset": customer.coins_last_reset,
            "max_coins": ledger.max_coins,
            "transactions": [
                {
                    "id": tx.id,
                    "type": tx.transaction_type,
                    "amount": tx.amount,
                    "description": tx.description or "",
                    "booking_id": tx.booking_id,
                    "created_at": tx.created_at,
                }
                for tx in transactions
            ],
        },
        "Coin balance retrieved successfully",
    )
