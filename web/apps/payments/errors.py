"""Error taxonomy of the payments domain.

Every error carries the HTTP status the API layer answers with and a
client-safe message. Messages never contain gateway credentials.
"""


class PaymentError(Exception):
    """Base class for errors raised by the payments domain.

    Attributes:
        status_code: HTTP status the API layer should answer with.
        message: Client-safe description.
    """

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ConfigurationError(PaymentError):
    status_code = 500
    default_message = "Server misconfiguration: missing payment keys"


class MissingFields(PaymentError):
    status_code = 400
    default_message = "Missing payment verification fields"


class InvalidAmount(PaymentError):
    status_code = 400
    default_message = "invalid amount"


class GatewayError(PaymentError):
    """Remote order creation failed.

    ``status_code`` carries the gateway's HTTP status when it answered,
    500 otherwise.
    """

    status_code = 500
    default_message = "Failed to create order"


class PersistenceError(PaymentError):
    status_code = 500
    default_message = "Failed to persist payment record"


class InvalidSignature(PaymentError):
    status_code = 400
    default_message = "Invalid signature"


class VerificationError(PaymentError):
    status_code = 500
    default_message = "Verification failed"
