"""Business errors raised by the ordering services.

Malformed input is reported with protean's ``ValidationError``. The classes
below cover the remaining failure kinds; each carries the HTTP status the API
layer answers with, so the mapping lives next to the error rather than in
every route.
"""


class OrderingError(Exception):
    """Base class for ordering business errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InsufficientStockError(OrderingError):
    """A line asked for more units than the product has available."""

    def __init__(self, product_name: str, available: int, product_id: str | None = None):
        super().__init__(f"Stock insuficiente para {product_name}. Disponible: {available}")
        self.product_name = product_name
        self.available = available
        self.product_id = product_id


class IllegalTransitionError(OrderingError):
    """The order's current status does not allow the requested change."""


class PaymentError(OrderingError):
    """A payment operation cannot be performed on the order in its current state."""


class NotFoundError(OrderingError):
    status_code = 404


class NotAuthenticatedError(OrderingError):
    status_code = 401

    def __init__(self, message: str = "No está autorizado para acceder a esta ruta"):
        super().__init__(message)


class NotAuthorizedError(OrderingError):
    """The requester is known but may not act on this order."""

    status_code = 401


class ForbiddenError(OrderingError):
    """The requester's role is not allowed on the route."""

    status_code = 403
