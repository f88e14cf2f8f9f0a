"""Checkout failures raised by the services and turned into API responses in app.main."""


class CheckoutError(Exception):
    """Base class for every checkout failure surfaced to the buyer."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(CheckoutError):
    """Empty cart, empty coupon code, unacknowledged removed items."""

    status_code = 400


class CouponRejected(CheckoutError):
    """Coupon is unknown, inactive, expired, exhausted or scoped to another seller."""

    status_code = 400

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class StaleDataFailure(CheckoutError):
    """A cart line asks for more units than the product has in stock."""

    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Available: {available}, Requested: {requested}"
        )


class CheckoutInProgress(CheckoutError):
    status_code = 409

    def __init__(self, message: str = "A checkout is already being processed"):
        super().__init__(message)


class PaymentDeclined(CheckoutError):
    status_code = 402

    def __init__(self, reference: str | None = None):
        self.reference = reference
        super().__init__("Payment was not successful")


class PersistenceFailure(CheckoutError):
    """A database write failed; the whole attempt was rolled back."""

    status_code = 500

    def __init__(self, step: str, cause: Exception | None = None):
        self.step = step
        self.cause = cause
        super().__init__(f"Checkout failed while {step}. Please try again.")


class PaymentUnavailable(CheckoutError):
    """The payment gateway errored before giving an answer."""

    status_code = 502

    def __init__(self, cause: Exception | None = None):
        self.cause = cause
        super().__init__("Payment could not be completed. Please try again.")
