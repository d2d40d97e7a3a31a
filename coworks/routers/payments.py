from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.core.errors import envelope
from coworks.db import get_db
from coworks.deps import get_current_customer, get_orchestrator, get_reconciler
from coworks.models.customer import Customer
from coworks.services.bookings import BookingOrchestrator
from coworks.services.webhooks import WebhookReconciler

router = APIRouter(prefix="/api/payments", tags=["payments"])


class VerifyPaymentIn(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)


@router.post("/verify")
async def verify_payment(
    payload: VerifyPaymentIn,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    booking = await orchestrator.verify_checkout(
        db,
        customer.id,
        payload.razorpay_order_id,
        payload.razorpay_payment_id,
        payload.razorpay_signature,
    )
    return envelope(booking.to_dict(), "Payment verified successfully")


@router.post("/razorpay-webhook")
async def razorpay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    reconciler: WebhookReconciler = Depends(get_reconciler),
):
    raw_body = await request.body()
    outcome = await reconciler.handle(
        db,
        raw_body,
        request.headers.get("x-razorpay-signature"),
        event_id=request.headers.get("x-razorpay-event-id"),
    )
    return envelope(
        {
            "event": outcome.event,
            "status": outcome.status,
            "changed": outcome.changed,
            "duplicate": outcome.duplicate,
            "booking_id": outcome.booking_id,
            "booking_type": outcome.booking_type,
        },
        outcome.message,
    )
