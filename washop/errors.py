"""Exception hierarchy shared by services and routers.

Every class carries the HTTP status the client-facing routers answer with.
"""


class WashopError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(WashopError):
    status_code = 500
    default_message = "Service is not configured"


class InvalidRequest(WashopError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(WashopError):
    status_code = 404
    default_message = "Not found"


class OrderNotFound(NotFound):
    default_message = "Order not found"


class ShopNotFound(NotFound):
    default_message = "Shop not found"


class CodeNotFound(NotFound):
    default_message = (
        "Invalid or expired redemption code. Please check the code and try again."
    )


class PaymentProofNotFound(NotFound):
    default_message = "Payment proof not found"


class Unauthorized(WashopError):
    status_code = 403
    default_message = "Unauthorized"


class AuthenticationFailed(Unauthorized):
    status_code = 401
    default_message = "Authentication failed"


class ProviderError(WashopError):
    status_code = 502
    default_message = "Payment provider error"


class ProviderInitError(ProviderError):
    default_message = "Failed to initialize payment"


class VerificationFailed(ProviderError):
    status_code = 400
    default_message = "Verification failed"


class InvalidSignature(WashopError):
    status_code = 401
    default_message = "Invalid signature"


class GenerationError(WashopError):
    status_code = 500
    default_message = "Could not generate a unique redemption code"
