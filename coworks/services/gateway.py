"""
Payment gateway adapter.

``PaymentGateway`` is the seam the booking orchestrator and the webhook
reconciler depend on; ``RazorpayGateway`` talks to the Razorpay REST API
over httpx. Signature checks are plain HMAC computations and cannot be
switched off: environments that need different behaviour inject another
``PaymentGateway``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from coworks.core.errors import PaymentGatewayError, PaymentGatewayTimeout
from coworks.core.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class GatewayOrder:
    order_id: str
    amount: int  # minor units
    currency: str
    status: str
    receipt: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayRefund:
    refund_id: str
    payment_id: str
    amount: int | None
    status: str
    idempotency_key: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


def hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentGateway:
    """Interface shared by the real gateway and test doubles."""

    key_id: str = ""

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str, notes: dict[str, str] | None = None
    ) -> GatewayOrder:
        raise NotImplementedError

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        raise NotImplementedError

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        raise NotImplementedError

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        raise NotImplementedError

    async def refund(
        self, payment_id: str, amount_minor: int | None = None, idempotency_key: str | None = None
    ) -> GatewayRefund:
        raise NotImplementedError


class RazorpayGateway(PaymentGateway):
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        api_base: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.key_id = key_id
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
            api_base=settings.RAZORPAY_API_BASE,
            timeout=settings.RAZORPAY_TIMEOUT_SECONDS,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_base,
            auth=(self.key_id, self._key_secret),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        if not (self.key_id and self._key_secret):
            raise PaymentGatewayError("Razorpay is not configured", code="gateway_not_configured")
        try:
            async with self._client() as client:
                resp = await client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.warning("Razorpay %s %s timed out after %ss", method, path, self._timeout)
            raise PaymentGatewayTimeout("Payment gateway timed out") from e
        except httpx.HTTPError as e:
            logger.error("Razorpay %s %s failed: %s", method, path, e)
            raise PaymentGatewayError("Payment gateway unreachable") from e

        if resp.status_code >= 400:
            try:
                description = resp.json().get("error", {}).get("description")
            except ValueError:
                description = None
            logger.error("Razorpay %s %s returned %s: %s", method, path, resp.status_code, resp.text)
            raise PaymentGatewayError(
                description or "Payment gateway rejected the request",
                details={"gateway_status": resp.status_code},
            )
        return resp.json()

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str, notes: dict[str, str] | None = None
    ) -> GatewayOrder:
        data = await self._request("POST", "/orders", json={
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "payment_capture": 1,
        })
        return GatewayOrder(
            order_id=data["id"],
            amount=int(data.get("amount", amount_minor)),
            currency=data.get("currency", currency),
            status=data.get("status", "created"),
            receipt=data.get("receipt"),
            raw=data,
        )

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not (self._key_secret and signature):
            return False
        expected = hmac_sha256(self._key_secret, f"{order_id}|{payment_id}".encode())
        return hmac.compare_digest(expected, signature)

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        if not (self._webhook_secret and signature):
            return False
        expected = hmac_sha256(self._webhook_secret, raw_body)
        return hmac.compare_digest(expected, signature)

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}")

    async def refund(
        self, payment_id: str, amount_minor: int | None = None, idempotency_key: str | None = None
    ) -> GatewayRefund:
        body: dict[str, Any] = {}
        if amount_minor:
            body["amount"] = amount_minor
        if idempotency_key:
            # Razorpay dedupes refunds on receipt
            body["receipt"] = idempotency_key
        data = await self._request("POST", f"/payments/{payment_id}/refund", json=body)
        return GatewayRefund(
            refund_id=data["id"],
            payment_id=data.get("payment_id", payment_id),
            amount=data.get("amount"),
            status=data.get("status", "processed"),
            idempotency_key=data.get("receipt", idempotency_key),
            raw=data,
        )
