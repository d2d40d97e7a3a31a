from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Integer, ForeignKey, DateTime, String, Enum
from sqlalchemy.orm import Mapped, mapped_column

from coworks.db import Base


class CoinTransactionType(str, enum.Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    RESET = "RESET"


class CoinTransaction(Base):
    """Append-only audit row, one per balance change."""

    __tablename__ = "coin_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), index=True)
    amount: Mapped[int] = mapped_column(Integer)  # signed
    transaction_type: Mapped[CoinTransactionType] = mapped_column(
        Enum(CoinTransactionType, native_enum=False, length=16)
    )
    booking_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    booking_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
