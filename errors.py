"""
Error types raised by the route handlers.

Every error reaches the client as HTTP 200 with {"success": false,
"message": ...}; the storefront and admin clients branch only on
"success". The ``kind`` tag keeps the categories apart for logging and tests.
"""


class ShopError(Exception):
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(ShopError):
    kind = "invalid"


class NotFound(ShopError):
    kind = "not_found"


class NotAuthorized(ShopError):
    kind = "unauthorized"


class Conflict(ShopError):
    kind = "conflict"


class GatewayNotConfigured(ShopError):
    kind = "not_configured"

    def __init__(self, gateway: str):
        super().__init__(
            f"{gateway} payment is not configured. Please use COD or contact support."
        )
        self.gateway = gateway


class PaymentGatewayError(ShopError):
    kind = "gateway_error"


class DatabaseUnavailable(ShopError):
    kind = "unavailable"


class InsufficientStock(ShopError):
    kind = "insufficient_stock"

    def __init__(self, name: str, size: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {name} ({size}). "
            f"Available: {available}, Requested: {requested}"
        )
        self.name = name
        self.size = size
        self.available = available
        self.requested = requested
