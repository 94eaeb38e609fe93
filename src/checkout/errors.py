class CheckoutError(Exception):
    """Base for every failure a checkout or order update reports to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CheckoutError):
    """Bad or missing input, caught before the store is touched."""


class StockConflictError(CheckoutError):
    """Not enough stock left when the transaction read it."""

    def __init__(self, product_name: str, remaining: int):
        super().__init__(
            f"Not enough stock for {product_name}. Only {remaining} left."
        )
        self.product_name = product_name
        self.remaining = remaining


class ProductNotFoundError(CheckoutError):
    def __init__(self, pid: int, name: str = ""):
        label = name or f"#{pid}"
        super().__init__(
            f"Product {label} is no longer available. Please refresh and try again."
        )
        self.pid = pid


class TransactionFailedError(CheckoutError):
    """The store failed or kept conflicting; nothing was written."""


class InvalidTransitionError(CheckoutError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot change order status from {current} to {requested}.")
        self.current = current
        self.requested = requested


class OrderNotFoundError(CheckoutError):
    def __init__(self, ono: int):
        super().__init__(f"Order {ono} not found.")
        self.ono = ono
