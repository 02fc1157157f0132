"""Error taxonomy for the fulfillment core.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer reports it with. Field-level validation keeps using Protean's
``ValidationError`` and missing records ``ObjectNotFoundError``; the API maps
both into the same envelope.
"""

from typing import Any


class FulfillmentError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class InsufficientStock(FulfillmentError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, sku_id: str, available: int, requested: int | None = None) -> None:
        super().__init__(
            f"Insufficient stock for SKU {sku_id}: {available} available",
            sku_id=str(sku_id),
            available=available,
            requested=requested,
        )
        self.sku_id = str(sku_id)
        self.available = available
        self.requested = requested


class InvalidTransition(FulfillmentError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_status: str, to_status: str, subject: str = "order") -> None:
        super().__init__(
            f"Cannot move {subject} from {from_status} to {to_status}",
            from_status=from_status,
            to_status=to_status,
        )
        self.from_status = from_status
        self.to_status = to_status


class InvalidAmount(FulfillmentError):
    code = "INVALID_AMOUNT"
    status_code = 400


class PriceChanged(FulfillmentError):
    """The live SKU price no longer matches the price captured in the cart."""

    code = "PRICE_CHANGED"
    status_code = 409

    def __init__(self, sku_id: str, quoted: float, current: float) -> None:
        super().__init__(
            f"Price of SKU {sku_id} changed from {quoted:.2f} to {current:.2f}",
            sku_id=str(sku_id),
            quoted_price=quoted,
            current_price=current,
        )
        self.sku_id = str(sku_id)


class Conflict(FulfillmentError):
    code = "CONFLICT"
    status_code = 409


class OrderNumberTaken(Conflict):
    """Retryable: a freshly generated order number collided with an existing one."""

    code = "ORDER_NUMBER_TAKEN"


class NotFound(FulfillmentError):
    code = "NOT_FOUND"
    status_code = 404


class Unauthorized(FulfillmentError):
    code = "UNAUTHORIZED"
    status_code = 401


class Forbidden(FulfillmentError):
    code = "FORBIDDEN"
    status_code = 403


class GatewayError(FulfillmentError):
    code = "PAYMENT_GATEWAY_ERROR"
    status_code = 502


class InternalError(FulfillmentError):
    pass
