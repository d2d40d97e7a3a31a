from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.core.settings import settings
from coworks.db import get_db
from coworks.models.customer import Customer
from coworks.services.bookings import BookingOrchestrator
from coworks.services.gateway import PaymentGateway, RazorpayGateway
from coworks.services.ledger import LedgerStore
from coworks.services.security import decode_token
from coworks.services.webhooks import WebhookReconciler


@lru_cache
def get_gateway() -> PaymentGateway:
    return RazorpayGateway.from_settings(settings)


def get_ledger() -> LedgerStore:
    return LedgerStore(max_coins=settings.MAX_COINS)


def get_orchestrator(
    ledger: LedgerStore = Depends(get_ledger),
    gateway: PaymentGateway = Depends(get_gateway),
) -> BookingOrchestrator:
    return BookingOrchestrator(ledger, gateway, settings)


def get_reconciler(gateway: PaymentGateway = Depends(get_gateway)) -> WebhookReconciler:
    return WebhookReconciler(gateway)


async def get_current_customer(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Customer:
    auth = request.headers.get("authorization") or ""
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    payload = decode_token(auth.split(" ", 1)[1].strip())
    if not payload or payload.get("type") != "customer":
        raise HTTPException(status_code=401, detail="Unauthorized")
    customer_id = payload.get("id")
    if not customer_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        customer = await db.get(Customer, int(customer_id))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not customer:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return customer


async def require_complete_profile(customer: Customer = Depends(get_current_customer)) -> Customer:
    missing = customer.missing_documents()
    if any(missing.values()):
        raise HTTPException(
            status_code=403,
            detail={
                "message": "Please upload identity and address proof before booking",
                "data": {"missingFields": missing},
            },
        )
    return customer
