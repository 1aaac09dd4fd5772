"""Runtime settings read from the environment (and an optional ``.env``).

Secrets are looked up at call time through :func:`require_env` so a missing
key fails the operation that needs it instead of the whole process.
"""

import os
from decimal import Decimal

from dotenv import load_dotenv

from washop.errors import ConfigurationError

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Деньги
PLATFORM_FEE_PERCENT = Decimal(os.getenv("PLATFORM_FEE_PERCENT", "5"))
CURRENCY = os.getenv("PAYMENT_CURRENCY", "NGN")
REFERENCE_PREFIX = os.getenv("PAYMENT_REFERENCE_PREFIX", "WASHOP")
PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))

# Подписки
DEFAULT_PLAN = "starter"
PLAN_PRICES = {
    "starter": Decimal(os.getenv("PLAN_PRICE_STARTER", "2500")),
    "pro": Decimal(os.getenv("PLAN_PRICE_PRO", "5000")),
    "business": Decimal(os.getenv("PLAN_PRICE_BUSINESS", "10000")),
}

AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")


def require_env(name: str) -> str:
    value = (os.getenv(name) or "").strip()
    if not value:
        raise ConfigurationError(f"{name} is not configured")
    return value
