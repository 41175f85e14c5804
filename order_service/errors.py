"""
errors.py — Error Taxonomy for Order Placement

Every rejection the service can produce is an `OrderServiceError` carrying the
HTTP status it maps to. The FastAPI layer renders them as `{"error": message}`.

Categories:
    • Client/shape errors (400): malformed payload, missing item fields, unknown SKU
    • Business-rule conflicts (409): insufficient stock, uniqueness violations
    • Infrastructure failures (500): database unreachable, missing configuration
"""


class OrderServiceError(Exception):
    """Base class for all errors surfaced to the order-placement caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidOrderError(OrderServiceError):
    """The request is malformed (missing customer, empty cart, incomplete item)."""

    status_code = 400


class ProductNotFoundError(OrderServiceError):
    """A line item references a SKU that does not exist."""

    status_code = 400

    def __init__(self, sku: str):
        super().__init__(f"Produkt mit SKU {sku} nicht gefunden")
        self.sku = sku


class ConflictError(OrderServiceError):
    """The request is well-formed but cannot be satisfied right now."""

    status_code = 409


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds the locked stock of a product."""

    def __init__(self, sku: str, name: str, available: int, requested: int):
        super().__init__(
            f"Nicht genügend Bestand für {name} (SKU {sku}): "
            f"verfügbar {available}, angefragt {requested}"
        )
        self.sku = sku
        self.name = name
        self.available = available
        self.requested = requested


class OrderNotFoundError(OrderServiceError):
    status_code = 404

    def __init__(self, order_number: str):
        super().__init__(f"Bestellung {order_number} nicht gefunden")
        self.order_number = order_number


class PersistenceError(OrderServiceError):
    """Database unreachable, pool exhausted or any other storage failure."""

    status_code = 500


class ConfigurationError(OrderServiceError):
    status_code = 500
