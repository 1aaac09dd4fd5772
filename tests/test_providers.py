import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from washop.errors import (
    ConfigurationError,
    InvalidRequest,
    InvalidSignature,
    ProviderInitError,
    VerificationFailed,
)
from washop.providers.flutterwave import FlutterwaveProvider
from washop.providers.paystack import PaystackProvider, from_kobo, to_kobo
from washop.providers.registry import get_provider


def test_kobo_conversion():
    assert to_kobo(Decimal("10000")) == 1000000
    assert to_kobo(Decimal("12.345")) == 1235
    assert from_kobo(150050) == Decimal("1500.50")


def test_reference_format():
    provider = PaystackProvider(secret_key="sk_test")
    reference = provider.make_reference("order-1")
    prefix, entity, millis, suffix = reference.rsplit("_", 3)
    assert prefix == "WASHOP"
    assert entity == "order-1"
    assert millis.isdigit()
    assert len(suffix) == 8

    assert provider.make_reference("shop-1", subscription=True).startswith("WASHOP_SUB_shop-1_")
    assert provider.make_reference("order-1") != reference


def test_registry():
    assert isinstance(get_provider("Paystack"), PaystackProvider)
    with pytest.raises(InvalidRequest):
        get_provider("stripe")


def test_missing_secret_is_configuration_error():
    with pytest.raises(ConfigurationError):
        PaystackProvider().ensure_configured()
    with pytest.raises(ConfigurationError):
        PaystackProvider().secret_key


def test_secret_from_env_or_argument(monkeypatch):
    PaystackProvider(secret_key="sk_test").ensure_configured()

    monkeypatch.setenv("PAYSTACK_SECRET_KEY", "sk_env")
    provider = PaystackProvider()
    provider.ensure_configured()
    assert provider.secret_key == "sk_env"


def test_paystack_initialize_sends_kobo():
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "status": True,
                "data": {
                    "authorization_url": "https://checkout.paystack.com/abc",
                    "access_code": "abc",
                    "reference": "REF1",
                },
            },
        )

    provider = PaystackProvider(secret_key="sk_test", transport=httpx.MockTransport(handler))
    result = asyncio.run(
        provider.initialize(Decimal("2500"), "NGN", "REF1", "https://shop/cb", "a@b.c", {"order_id": "o1"})
    )

    assert result.hosted_url == "https://checkout.paystack.com/abc"
    assert result.access_code == "abc"
    assert seen["auth"] == "Bearer sk_test"
    assert seen["body"]["amount"] == 250000
    assert seen["body"]["metadata"] == {"order_id": "o1"}


def test_paystack_initialize_rejected():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(400, json={"status": False, "message": "Invalid key"})
    )
    provider = PaystackProvider(secret_key="sk_bad", transport=transport)

    with pytest.raises(ProviderInitError) as exc:
        asyncio.run(provider.initialize(Decimal("1"), "NGN", "R", None, "a@b.c", {}))
    assert exc.value.message == "Invalid key"


def test_paystack_verify_maps_transaction():
    def handler(request: httpx.Request):
        assert request.url.path == "/transaction/verify/REF1"
        return httpx.Response(
            200,
            json={
                "status": True,
                "data": {
                    "id": 4099260516,
                    "reference": "REF1",
                    "status": "success",
                    "amount": 1000000,
                    "currency": "NGN",
                    "metadata": {"order_id": "o1", "payment_type": "order"},
                },
            },
        )

    provider = PaystackProvider(secret_key="sk_test", transport=httpx.MockTransport(handler))
    transaction = asyncio.run(provider.verify(reference="REF1"))

    assert transaction.succeeded
    assert transaction.amount == Decimal("10000.00")
    assert transaction.transaction_id == "4099260516"
    assert transaction.payment_type == "order"
    assert transaction.metadata["order_id"] == "o1"


def test_verify_timeout_is_verification_failure():
    def handler(request: httpx.Request):
        raise httpx.ReadTimeout("timed out", request=request)

    provider = PaystackProvider(secret_key="sk_test", transport=httpx.MockTransport(handler))
    with pytest.raises(VerificationFailed) as exc:
        asyncio.run(provider.verify(reference="REF1"))
    assert "timeout" in exc.value.message.lower()


def test_paystack_webhook_signature():
    provider = PaystackProvider(secret_key="sk_test")
    body = json.dumps(
        {
            "event": "charge.success",
            "data": {"reference": "REF1", "status": "success", "amount": 500000, "metadata": ""},
        }
    ).encode()

    event = provider.parse_webhook(body, {"x-paystack-signature": provider.signature_for(body)})
    assert event.is_charge_success
    assert event.transaction.amount == Decimal("5000.00")
    assert event.transaction.metadata == {}

    with pytest.raises(InvalidSignature):
        provider.parse_webhook(body, {"x-paystack-signature": "0" * 128})
    with pytest.raises(InvalidSignature):
        provider.parse_webhook(body, {})


def test_paystack_other_events_are_not_charges():
    provider = PaystackProvider(secret_key="sk_test")
    body = json.dumps({"event": "transfer.success", "data": {"reference": "T1", "status": "success"}}).encode()

    event = provider.parse_webhook(body, {"x-paystack-signature": provider.signature_for(body)})
    assert event.event == "transfer.success"
    assert not event.is_charge_success


def test_flutterwave_webhook_hash():
    provider = FlutterwaveProvider(secret_key="FLWSECK_TEST", webhook_hash="my-hash")
    body = json.dumps(
        {
            "event": "charge.completed",
            "data": {"id": 285959875, "tx_ref": "REF2", "status": "successful", "amount": 7500},
        }
    ).encode()

    event = provider.parse_webhook(body, {"verif-hash": "my-hash"})
    assert event.is_charge_success
    assert event.transaction.transaction_id == "285959875"
    assert event.transaction.amount == Decimal("7500")

    with pytest.raises(InvalidSignature):
        provider.parse_webhook(body, {"verif-hash": "wrong"})
    with pytest.raises(InvalidSignature):
        provider.parse_webhook(body, {})


def test_flutterwave_verify_by_reference():
    def handler(request: httpx.Request):
        assert request.url.path == "/v3/transactions/verify_by_reference"
        assert request.url.params["tx_ref"] == "REF2"
        return httpx.Response(
            200,
            json={
                "status": "success",
                "data": {
                    "id": 1,
                    "tx_ref": "REF2",
                    "status": "successful",
                    "amount": 7500,
                    "meta": {"shop_id": "s1", "payment_type": "subscription"},
                },
            },
        )

    provider = FlutterwaveProvider(secret_key="FLWSECK_TEST", transport=httpx.MockTransport(handler))
    transaction = asyncio.run(provider.verify(reference="REF2"))

    assert transaction.succeeded
    assert transaction.payment_type == "subscription"
    assert transaction.reference == "REF2"
