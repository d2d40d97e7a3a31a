from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coworks.core.errors import PaymentGatewayError
from coworks.core.settings import Settings
from coworks.db import Base
from coworks.models import all_models  # noqa: F401
from coworks.models.customer import Customer
from coworks.models.resource import AvailabilityStatus, Branch, Seat, SeatingType, SeatingTypeName
from coworks.services.bookings import BookingOrchestrator
from coworks.services.gateway import GatewayOrder, GatewayRefund, PaymentGateway, hmac_sha256
from coworks.services.ledger import LedgerStore
from coworks.services.webhooks import WebhookReconciler

KEY_SECRET = "test-key-secret"
WEBHOOK_SECRET = "test-webhook-secret"


class FakeGateway(PaymentGateway):
    key_id = "rzp_test_fake"

    def __init__(self) -> None:
        self.orders: list[GatewayOrder] = []
        self.refunds: list[GatewayRefund] = []
        self.create_error: PaymentGatewayError | None = None

    async def create_order(self, amount_minor, currency, receipt, notes=None):
        if self.create_error is not None:
            raise self.create_error
        order = GatewayOrder(
            order_id=f"order_{len(self.orders) + 1}",
            amount=amount_minor,
            currency=currency,
            status="created",
            receipt=receipt,
        )
        self.orders.append(order)
        return order

    def verify_payment_signature(self, order_id, payment_id, signature):
        return signature == hmac_sha256(KEY_SECRET, f"{order_id}|{payment_id}".encode())

    def verify_webhook_signature(self, raw_body, signature):
        return signature == hmac_sha256(WEBHOOK_SECRET, raw_body)

    async def fetch_payment(self, payment_id):
        return {"id": payment_id, "status": "captured"}

    async def refund(self, payment_id, amount_minor=None, idempotency_key=None):
        refund = GatewayRefund(
            refund_id=f"rfnd_{len(self.refunds) + 1}",
            payment_id=payment_id,
            amount=amount_minor,
            status="processed",
            idempotency_key=idempotency_key,
        )
        self.refunds.append(refund)
        return refund


def checkout_signature(order_id: str, payment_id: str) -> str:
    return hmac_sha256(KEY_SECRET, f"{order_id}|{payment_id}".encode())


def webhook_body(event: str, order_id: str | None, payment_id: str = "pay_1") -> bytes:
    entity = {"id": payment_id, "entity": "payment", "order_id": order_id, "status": event.split(".")[-1]}
    return json.dumps({"entity": "event", "event": event, "payload": {"payment": {"entity": entity}}}).encode()


def sign_webhook(body: bytes) -> str:
    return hmac_sha256(WEBHOOK_SECRET, body)


@pytest.fixture
def settings() -> Settings:
    return Settings(MAX_COINS=1196, CURRENCY="INR")


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def ledger(settings) -> LedgerStore:
    return LedgerStore(max_coins=settings.MAX_COINS)


@pytest.fixture
def orchestrator(ledger, gateway, settings) -> BookingOrchestrator:
    return BookingOrchestrator(ledger, gateway, settings)


@pytest.fixture
def reconciler(gateway) -> WebhookReconciler:
    return WebhookReconciler(gateway)


@pytest_asyncio.fixture
async def branch(db) -> Branch:
    branch = Branch(name="Koramangala", short_code="KRM", location="Bengaluru")
    db.add(branch)
    await db.commit()
    return branch


@pytest_asyncio.fixture
async def seating_types(db) -> dict[SeatingTypeName, SeatingType]:
    types = {
        SeatingTypeName.MEETING_ROOM: SeatingType(
            name=SeatingTypeName.MEETING_ROOM, short_code="MR", hourly_rate=Decimal("50.00"), coin_billing=True
        ),
        SeatingTypeName.HOT_DESK: SeatingType(
            name=SeatingTypeName.HOT_DESK, short_code="HD", hourly_rate=Decimal("20.00"), coin_billing=False
        ),
    }
    db.add_all(types.values())
    await db.commit()
    return types


@pytest_asyncio.fixture
async def meeting_room(db, branch, seating_types) -> Seat:
    seat = Seat(
        branch_id=branch.id,
        seating_type_id=seating_types[SeatingTypeName.MEETING_ROOM].id,
        seat_number="MR-1",
        seat_code="KRM-MR-1",
        capacity=8,
        availability_status=AvailabilityStatus.AVAILABLE,
    )
    db.add(seat)
    await db.commit()
    await db.refresh(seat)
    return seat


@pytest_asyncio.fixture
async def hot_desk(db, branch, seating_types) -> Seat:
    seat = Seat(
        branch_id=branch.id,
        seating_type_id=seating_types[SeatingTypeName.HOT_DESK].id,
        seat_number="HD-1",
        seat_code="KRM-HD-1",
        capacity=1,
        availability_status=AvailabilityStatus.AVAILABLE,
    )
    db.add(seat)
    await db.commit()
    await db.refresh(seat)
    return seat


@pytest_asyncio.fixture
async def make_customer(db):
    created = 0

    async def _make(balance: int = 500, last_reset: datetime | None = None, documents: bool = True) -> Customer:
        nonlocal created
        created += 1
        customer = Customer(
            name=f"Customer {created}",
            email=f"customer{created}@example.com",
            proof_of_identity="https://files.example.com/id.pdf" if documents else None,
            proof_of_address="https://files.example.com/address.pdf" if documents else None,
            coins_balance=balance,
            coins_last_reset=last_reset or datetime.utcnow(),
        )
        db.add(customer)
        await db.commit()
        return customer

    return _make


@pytest_asyncio.fixture
async def customer(make_customer) -> Customer:
    return await make_customer()
