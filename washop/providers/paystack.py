"""Paystack adapter.

Docs: https://paystack.com/docs/api/  (amounts travel in kobo).
"""

import hashlib
import hmac
import json
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Mapping

from washop.errors import InvalidRequest, InvalidSignature
from washop.providers.base import (
    InitializedPayment,
    PaymentProvider,
    ProviderTransaction,
    WebhookEvent,
    as_metadata,
)

SIGNATURE_HEADER = "x-paystack-signature"


def to_kobo(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_kobo(kobo) -> Decimal:
    return (Decimal(kobo or 0) / 100).quantize(Decimal("0.01"))


class PaystackProvider(PaymentProvider):
    name = "paystack"
    base_url = "https://api.paystack.co"
    secret_env = "PAYSTACK_SECRET_KEY"

    def _response_ok(self, payload: Dict[str, Any]) -> bool:
        # Paystack always returns a boolean "status" field
        return payload.get("status") is True

    async def _initialize(self, amount, currency, reference, redirect_url, email, metadata, title):
        payload = {
            "email": email,
            "amount": to_kobo(amount),
            "currency": currency,
            "reference": reference,
            "metadata": metadata,
        }
        if redirect_url:
            payload["callback_url"] = redirect_url

        logging.info("Initializing Paystack payment: reference=%s amount=%s", reference, payload["amount"])
        response = await self._request("POST", "/transaction/initialize", json=payload)
        data = response.get("data") or {}
        return InitializedPayment(
            hosted_url=data.get("authorization_url"),
            reference=data.get("reference") or reference,
            access_code=data.get("access_code"),
        )

    async def _verify(self, reference, transaction_id):
        # Paystack проверяет только по reference
        if not reference:
            raise InvalidRequest("Paystack verification requires a reference")
        response = await self._request("GET", f"/transaction/verify/{reference}")
        return self._to_transaction(response.get("data") or {})

    def _to_transaction(self, data: Dict[str, Any]) -> ProviderTransaction:
        transaction_id = data.get("id")
        return ProviderTransaction(
            reference=data.get("reference"),
            status=data.get("status") or "",
            amount=from_kobo(data.get("amount")),
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            currency=data.get("currency"),
            metadata=as_metadata(data.get("metadata")),
        )

    def signature_for(self, body: bytes) -> str:
        return hmac.new(self.secret_key.encode(), body, hashlib.sha512).hexdigest()

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        signature = headers.get(SIGNATURE_HEADER)
        if not signature:
            raise InvalidSignature("Missing webhook signature")
        if not hmac.compare_digest(self.signature_for(body), signature):
            raise InvalidSignature()

        event = json.loads(body)
        name = event.get("event") or ""
        data = event.get("data") or {}
        transaction = self._to_transaction(data) if data else None
        return WebhookEvent(
            event=name,
            is_charge_success=(
                name == "charge.success" and transaction is not None and transaction.succeeded
            ),
            transaction=transaction,
        )
