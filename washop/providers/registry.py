from washop.errors import InvalidRequest
from washop.providers.base import PaymentProvider
from washop.providers.flutterwave import FlutterwaveProvider
from washop.providers.paystack import PaystackProvider

PROVIDERS = {
    PaystackProvider.name: PaystackProvider,
    FlutterwaveProvider.name: FlutterwaveProvider,
}


def get_provider(name: str) -> PaymentProvider:
    provider_cls = PROVIDERS.get((name or "").lower())
    if provider_cls is None:
        raise InvalidRequest(f"Unknown payment provider: {name}")
    return provider_cls()
