"""Flutterwave Standard adapter.

Docs: https://developer.flutterwave.com/docs  (amounts travel in major units).
"""

import hmac
import json
import logging
import os
from decimal import Decimal
from typing import Any, Dict, Mapping

from washop.errors import InvalidSignature
from washop.providers.base import (
    InitializedPayment,
    PaymentProvider,
    ProviderTransaction,
    WebhookEvent,
    as_metadata,
)

HASH_HEADER = "verif-hash"


class FlutterwaveProvider(PaymentProvider):
    name = "flutterwave"
    base_url = "https://api.flutterwave.com/v3"
    secret_env = "FLUTTERWAVE_SECRET_KEY"
    reverify_webhooks = True

    def __init__(self, *args, webhook_hash: str = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._webhook_hash = webhook_hash

    @property
    def webhook_hash(self):
        return self._webhook_hash or (os.getenv("FLUTTERWAVE_WEBHOOK_HASH") or "").strip() or None

    def _response_ok(self, payload: Dict[str, Any]) -> bool:
        return payload.get("status") == "success"

    async def _initialize(self, amount, currency, reference, redirect_url, email, metadata, title):
        payload = {
            "tx_ref": reference,
            "amount": str(amount),
            "currency": currency,
            "redirect_url": redirect_url,
            "customer": {"email": email},
            "meta": metadata,
            "customizations": {"title": title or "WAShop payment"},
        }
        logging.info("Initializing Flutterwave payment: tx_ref=%s amount=%s", reference, amount)
        response = await self._request("POST", "/payments", json=payload)
        data = response.get("data") or {}
        return InitializedPayment(hosted_url=data.get("link"), reference=reference)

    async def _verify(self, reference, transaction_id):
        if transaction_id:
            response = await self._request("GET", f"/transactions/{transaction_id}/verify")
        else:
            response = await self._request(
                "GET", "/transactions/verify_by_reference", params={"tx_ref": reference}
            )
        return self._to_transaction(response.get("data") or {})

    def _to_transaction(self, data: Dict[str, Any]) -> ProviderTransaction:
        transaction_id = data.get("id")
        # в webhook метаданные иногда приходят как meta_data
        meta = data.get("meta") or data.get("meta_data")
        return ProviderTransaction(
            reference=data.get("tx_ref"),
            status=data.get("status") or "",
            amount=Decimal(str(data.get("amount") or 0)),
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            currency=data.get("currency"),
            metadata=as_metadata(meta),
        )

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        expected = self.webhook_hash
        if expected:
            received = headers.get(HASH_HEADER)
            if not received:
                raise InvalidSignature("Missing webhook hash")
            if not hmac.compare_digest(expected, received):
                raise InvalidSignature("Invalid webhook hash")

        event = json.loads(body)
        name = event.get("event") or ""
        data = event.get("data") or {}
        transaction = self._to_transaction(data) if data else None
        return WebhookEvent(
            event=name,
            is_charge_success=(
                name == "charge.completed" and transaction is not None and transaction.succeeded
            ),
            transaction=transaction,
        )
