from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.core.errors import MalformedWebhookError, WebhookSignatureError
from coworks.models.payment import WebhookEvent, WebhookEventStatus
from coworks.services.gateway import PaymentGateway
from coworks.services.settlement import mark_authorized, mark_captured, mark_failed, resolve_order

logger = logging.getLogger(__name__)

HANDLED_EVENTS = ("payment.authorized", "payment.captured", "payment.failed")


@dataclass
class WebhookOutcome:
    event: str
    status: WebhookEventStatus
    changed: bool = False
    duplicate: bool = False
    booking_id: int | None = None
    booking_type: str | None = None

    @property
    def message(self) -> str:
        if self.duplicate:
            return f"{self.event} already processed"
        if self.status == WebhookEventStatus.UNRESOLVED:
            return f"{self.event} acknowledged, no matching booking"
        if self.status == WebhookEventStatus.IGNORED:
            return "Event acknowledged but not processed"
        return f"{self.event} event processed successfully"


class WebhookReconciler:
    """Turns Razorpay payment events into booking and payment state.

    Deliveries may repeat or arrive out of order; every transition is a
    no-op when already applied. An event that cannot be tied to exactly
    one booking is stored as UNRESOLVED for an operator and acknowledged.
    """

    def __init__(self, gateway: PaymentGateway):
        self.gateway = gateway

    async def handle(
        self,
        db: AsyncSession,
        raw_body: bytes,
        signature: str | None,
        event_id: str | None = None,
    ) -> WebhookOutcome:
        if not signature:
            logger.warning("Webhook request missing Razorpay signature")
            raise WebhookSignatureError("Missing Razorpay signature")
        if not self.gateway.verify_webhook_signature(raw_body, signature):
            logger.warning("Invalid Razorpay webhook signature")
            raise WebhookSignatureError("Invalid signature")

        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError):
            raise MalformedWebhookError("Invalid payload format")
        if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
            raise MalformedWebhookError("Invalid payload format")

        event = payload["event"]
        payload_hash = hashlib.sha256(raw_body).hexdigest()

        if await self._already_processed(db, event_id, payload_hash):
            logger.info("Duplicate %s delivery (event %s) ignored", event, event_id)
            return WebhookOutcome(event=event, status=WebhookEventStatus.PROCESSED, duplicate=True)

        if event not in HANDLED_EVENTS:
            logger.info("Unhandled Razorpay webhook event: %s", event)
            return WebhookOutcome(event=event, status=WebhookEventStatus.IGNORED)

        try:
            entity = payload["payload"]["payment"]["entity"]
            order_id = entity.get("order_id")
            payment_id = entity.get("id")
        except (KeyError, TypeError, AttributeError):
            raise MalformedWebhookError("Payment entity missing from payload")

        record = WebhookEvent(
            event_id=event_id,
            event=event,
            order_id=order_id,
            payment_id=payment_id,
            payload_hash=payload_hash,
            payload=raw_body.decode("utf-8", errors="replace"),
            status=WebhookEventStatus.PROCESSED,
        )

        settlement = await resolve_order(db, order_id) if order_id else None
        if settlement is None:
            record.status = WebhookEventStatus.UNRESOLVED
            record.note = "No booking linked to this order"
            db.add(record)
            await db.commit()
            logger.warning("Unresolved %s for order %s (payment %s) queued for review", event, order_id, payment_id)
            return WebhookOutcome(event=event, status=WebhookEventStatus.UNRESOLVED)

        if event == "payment.captured":
            changed = await mark_captured(db, settlement, payment_id, self.gateway)
        elif event == "payment.failed":
            changed = await mark_failed(db, settlement, payment_id)
        else:
            changed = mark_authorized(settlement, payment_id)

        booking = settlement.booking
        record.note = f"{booking.booking_type.value}:{booking.id} {booking.status.value}/{booking.payment_status.value}"
        db.add(record)
        await db.commit()
        return WebhookOutcome(
            event=event,
            status=WebhookEventStatus.PROCESSED,
            changed=changed,
            booking_id=booking.id,
            booking_type=booking.booking_type.value,
        )

    async def _already_processed(self, db: AsyncSession, event_id: str | None, payload_hash: str) -> bool:
        stmt = select(WebhookEvent.id).where(WebhookEvent.status == WebhookEventStatus.PROCESSED)
        if event_id:
            stmt = stmt.where(WebhookEvent.event_id == event_id)
        else:
            stmt = stmt.where(WebhookEvent.payload_hash == payload_hash)
        return (await db.execute(stmt.limit(1))).first() is not None
