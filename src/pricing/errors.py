class CheckoutError(Exception):
    """Base class for everything the checkout flow raises."""


class InvalidPostalCode(ValueError, CheckoutError):
    def __init__(self, postal_code) -> None:
        super().__init__(f"Invalid postal code: {postal_code!r}")
        self.postal_code = postal_code


class RateTableUnavailable(CheckoutError):
    pass


class MissingShippingAddress(CheckoutError):
    def __init__(self, message: str = "Calculate after adding an address.") -> None:
        super().__init__(message)


class EmptyCart(CheckoutError):
    pass


class TotalsNotFinal(CheckoutError):
    """Shipping or tax figures are still being calculated."""


class OrderCreationFailed(CheckoutError):
    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class OrderNotFound(CheckoutError):
    def __init__(self, oid: str) -> None:
        super().__init__(f"Order not found: {oid}")
        self.oid = oid
