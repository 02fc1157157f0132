"""Pydantic request schemas for the marketplace API.

These are the external contracts; commands stay internal.
"""

from pydantic import BaseModel, Field


class AddCartItemRequest(BaseModel):
    sku_id: str
    quantity: int = Field(ge=1, default=1)
    cart_id: str | None = None


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=0)


class CheckoutRequest(BaseModel):
    cart_id: str
    shipping_address_id: str
    billing_address_id: str
    payment_method: str = Field(min_length=1, max_length=50)
    shipping_method: str = "standard"
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cart_id": "cart-001",
                    "shipping_address_id": "addr-001",
                    "billing_address_id": "addr-001",
                    "payment_method": "card",
                    "shipping_method": "express",
                }
            ]
        }
    }


class StatusChangeRequest(BaseModel):
    status: str
    notes: str | None = None
    tracking_number: str | None = None


class RefundRequest(BaseModel):
    # Empty refunds the remaining balance; non-positive amounts are rejected by the domain
    amount: float | None = None
    reason: str = Field(default="Requested by seller", max_length=500)
    idempotency_key: str | None = None


class OpenStockLocationRequest(BaseModel):
    sku_id: str
    location: str = Field(min_length=1, max_length=100)
    initial_stock: int = Field(ge=0, default=0)


class AdjustStockRequest(BaseModel):
    quantity_change: int
    note: str = Field(min_length=1, max_length=500)


class CreateShipmentRequest(BaseModel):
    order_id: str
    carrier: str = Field(min_length=1, max_length=100)
    tracking_code: str | None = None


class DispatchShipmentRequest(BaseModel):
    tracking_code: str | None = None


class ReturnItemRequest(BaseModel):
    order_id: str
    order_item_id: str
    quantity: int | None = Field(default=None, ge=1)
    reason: str | None = None
    notes: str | None = None


class ResolveReturnRequest(BaseModel):
    notes: str | None = None
