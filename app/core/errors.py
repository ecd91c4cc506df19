# app/core/errors.py


class CartError(Exception):
    """Base class for failures surfaced by the cart engine."""


class NotAuthenticated(CartError):
    """The operation needs a signed-in identity and there is none."""


class InsufficientStock(CartError):
    """Requested (or merged) quantity exceeds the product's current stock."""

    def __init__(self, product_id, requested: int, available: int, merged: bool = False):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.merged = merged
        super().__init__(
            f"product {product_id}: requested {requested}, {available} in stock"
        )


class CartNotResolved(CartError):
    """
    An operation needed a cart id before one was resolved.

    Should be unreachable: a cart is resolved (or created) by refresh
    before any mutation touches the remote store.
    """


class RemoteOperationFailed(CartError):
    """
    Any transport or store-side failure of a Supabase call.

    Attributes:
        operation: name of the store operation that failed
        cause: the underlying exception
    """

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed{detail}")


class CartOutOfSync(CartError):
    """
    Local items may lag behind the remote cart: a write went through but
    no refresh has been applied since.
    """
