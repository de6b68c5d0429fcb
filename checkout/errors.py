class CheckoutError(Exception):
    """Base error for checkout failures."""


class CheckoutValidationError(CheckoutError):
    """Raised when an incoming request fails validation."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TaxPayloadMismatch(CheckoutValidationError):
    """Raised when the taxable amount disagrees with the line items."""


class PersistenceError(CheckoutError):
    """Raised when a payment row cannot be written."""


class PaymentNotFound(CheckoutError):
    """Raised when no payment matches the given identifier."""
