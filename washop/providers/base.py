"""Common provider adapter interface.

Every provider maps its own payloads onto :class:`ProviderTransaction` so the
reconciliation code only ever sees one shape.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import httpx

from washop import config
from washop.errors import ProviderError, ProviderInitError, VerificationFailed

# Провайдеры называют успешный статус по-разному
SUCCESS_STATUSES = {"success", "successful", "completed"}


def is_successful_status(status: Optional[str]) -> bool:
    return (status or "").strip().lower() in SUCCESS_STATUSES


@dataclass
class ProviderTransaction:
    reference: str
    status: str
    amount: Decimal
    transaction_id: Optional[str] = None
    currency: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return is_successful_status(self.status)

    @property
    def payment_type(self) -> str:
        return self.metadata.get("payment_type") or "order"


@dataclass
class InitializedPayment:
    hosted_url: str
    reference: str
    access_code: Optional[str] = None


@dataclass
class WebhookEvent:
    event: str
    is_charge_success: bool
    transaction: Optional[ProviderTransaction] = None


class PaymentProvider:
    name = ""
    base_url = ""
    secret_env = ""

    # Перепроверять ли webhook через verify API перед сверкой
    reverify_webhooks = False

    def __init__(self, secret_key: str = None, transport: httpx.AsyncBaseTransport = None,
                 timeout: float = None):
        self._secret_key = secret_key
        self._transport = transport
        self._timeout = timeout if timeout is not None else config.PROVIDER_TIMEOUT_SECONDS

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when the secret key is missing."""
        if not self._secret_key:
            self._secret_key = config.require_env(self.secret_env)

    @property
    def secret_key(self) -> str:
        self.ensure_configured()
        return self._secret_key

    def make_reference(self, entity_id: str, subscription: bool = False) -> str:
        """``{PREFIX}_{entity}_{millis}_{random}``; the random part keeps retries
        inside the same millisecond apart."""
        prefix = f"{config.REFERENCE_PREFIX}_SUB" if subscription else config.REFERENCE_PREFIX
        millis = int(time.time() * 1000)
        return f"{prefix}_{entity_id}_{millis}_{uuid.uuid4().hex[:8]}"

    def _response_ok(self, payload: Dict[str, Any]) -> bool:
        raise NotImplementedError

    async def _request(self, method: str, path: str, json: Dict[str, Any] = None,
                       params: Dict[str, Any] = None) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException:
            logging.error("%s request timed out: %s %s", self.name, method, path)
            raise ProviderError("Request timeout. Please try again.")
        except httpx.HTTPError as e:
            logging.error("%s request failed: %s %s: %s", self.name, method, path, e)
            raise ProviderError(f"{self.name} API error: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error or not self._response_ok(payload):
            message = payload.get("message") or f"HTTP {response.status_code}"
            logging.error("%s rejected %s %s: %s", self.name, method, path, payload or response.text)
            raise ProviderError(message)
        return payload

    async def initialize(self, amount: Decimal, currency: str, reference: str, redirect_url: str,
                         email: str, metadata: Dict[str, Any], title: str = None) -> InitializedPayment:
        try:
            return await self._initialize(amount, currency, reference, redirect_url, email, metadata, title)
        except ProviderInitError:
            raise
        except ProviderError as e:
            raise ProviderInitError(e.message)

    async def verify(self, reference: str = None, transaction_id: str = None) -> ProviderTransaction:
        if not reference and not transaction_id:
            raise VerificationFailed("reference or transaction_id is required")
        try:
            return await self._verify(reference, transaction_id)
        except VerificationFailed:
            raise
        except ProviderError as e:
            raise VerificationFailed(e.message)

    async def _initialize(self, amount, currency, reference, redirect_url, email, metadata, title):
        raise NotImplementedError

    async def _verify(self, reference, transaction_id):
        raise NotImplementedError

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        """Check the signature first, then decode the event.

        Raises :class:`InvalidSignature` before looking at the payload.
        """
        raise NotImplementedError


def as_metadata(value: Any) -> Dict[str, Any]:
    # Paystack отдаёт пустую строку, если metadata не передавали
    return value if isinstance(value, dict) else {}
