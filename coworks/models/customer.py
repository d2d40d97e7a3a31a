from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from coworks.db import Base


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (CheckConstraint("coins_balance >= 0", name="ck_customers_coins_non_negative"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128))
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # document urls, both required before booking
    proof_of_identity: Mapped[str | None] = mapped_column(String(512), nullable=True)
    proof_of_address: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # written only through LedgerStore
    coins_balance: Mapped[int] = mapped_column(Integer, default=0)
    coins_last_reset: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def missing_documents(self) -> dict[str, bool]:
        return {
            "proof_of_identity": not self.proof_of_identity,
            "proof_of_address": not self.proof_of_address,
        }
