"""Order aggregate: a placed order and its status lifecycle.

Status transitions are validated against a fixed graph:

    PENDING     -> PAID, PROCESSING, CANCELLED
    PAID        -> PROCESSING, CANCELLED, REFUNDED
    PROCESSING  -> SHIPPED, CANCELLED
    SHIPPED     -> DELIVERED, RETURNED
    DELIVERED   -> RETURNED, REFUNDED
    RETURNED    -> REFUNDED
    CANCELLED, REFUNDED are terminal

Asking for the status an order already has is a no-op. Every real transition
appends an ``OrderHistory`` entry; orders are never deleted.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.order.events import OrderPlaced, OrderRestocked, OrderStatusChanged
from marketplace.settings import CURRENCY
from marketplace.utils.money import quantize


class OrderStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"
    REFUNDED = "REFUNDED"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED, OrderStatus.REFUNDED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class AddressSnapshot:
    first_name = String(max_length=100)
    last_name = String(max_length=100)
    street = String(required=True, max_length=255)
    street2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    phone = String(max_length=30)


@marketplace.value_object(part_of="Order")
class OrderPricing:
    subtotal = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    tax_amount = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default=CURRENCY)

    @invariant.post
    def total_is_sum_of_parts(self):
        parts = quantize(self.subtotal) + quantize(self.shipping_cost) + quantize(self.tax_amount)
        if parts != quantize(self.total):
            raise ValidationError({"total": ["Total must equal subtotal + shipping + tax"]})


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    sku_id = Identifier(required=True)
    product_id = Identifier(required=True)
    sku_code = String(max_length=64)
    title = String(max_length=255)
    attributes = Text()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(required=True, min_value=0.0)

    @invariant.post
    def line_total_matches_quantity(self):
        if quantize(self.unit_price) * self.quantity != quantize(self.line_total):
            raise ValidationError({"line_total": ["Line total must equal unit price x quantity"]})


@marketplace.entity(part_of="Order")
class OrderHistory:
    from_status = String(max_length=20)
    to_status = String(required=True, max_length=20)
    actor = String(max_length=255)
    notes = Text()
    tracking_number = String(max_length=100)
    restock_type = String(max_length=20)
    created_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    order_number = String(required=True, max_length=30)
    buyer_id = Identifier(required=True)
    store_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    history = HasMany(OrderHistory)
    shipping_address = ValueObject(AddressSnapshot)
    billing_address = ValueObject(AddressSnapshot)
    pricing = ValueObject(OrderPricing)
    shipping_method = String(max_length=20)
    estimated_delivery = String(max_length=100)
    payment_method = String(max_length=50)
    tracking_number = String(max_length=100)
    notes = Text()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def place(
        cls,
        order_number,
        buyer_id,
        store_id,
        items,
        pricing,
        shipping_address,
        billing_address,
        shipping_method,
        estimated_delivery,
        payment_method,
        notes=None,
    ):
        """Create a PENDING order from checkout data.

        ``items`` is a list of OrderItem field dicts; ``pricing`` and the
        addresses are plain dicts.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            buyer_id=buyer_id,
            store_id=store_id,
            status=OrderStatus.PENDING.value,
            items=[OrderItem(**item) for item in items],
            shipping_address=AddressSnapshot(**shipping_address),
            billing_address=AddressSnapshot(**billing_address),
            pricing=OrderPricing(**pricing),
            shipping_method=shipping_method,
            estimated_delivery=estimated_delivery,
            payment_method=payment_method,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        order.add_history(
            OrderHistory(
                from_status=None,
                to_status=OrderStatus.PENDING.value,
                actor=str(buyer_id),
                notes="Order placed",
                created_at=now,
            )
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                buyer_id=str(buyer_id),
                store_id=str(store_id),
                item_count=sum(item["quantity"] for item in items),
                total=order.pricing.total,
                currency=order.pricing.currency,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_balanced(self) -> bool:
        """Subtotal equals the sum of line totals and total equals its parts."""
        lines = sum((quantize(item.line_total) for item in self.items), quantize(0))
        pricing = self.pricing
        return lines == quantize(pricing.subtotal) and quantize(pricing.total) == (
            quantize(pricing.subtotal) + quantize(pricing.shipping_cost) + quantize(pricing.tax_amount)
        )

    def can_transition_to(self, status) -> bool:
        return parse_status(status) in _VALID_TRANSITIONS[OrderStatus(self.status)]

    def latest_history(self):
        return max(self.history, key=lambda entry: entry.created_at, default=None)

    @property
    def has_restocked(self) -> bool:
        return any(entry.restock_type for entry in self.history)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def transition_to(self, status, actor=None, notes=None, tracking_number=None, restock_type=None):
        """Move to ``status``; returns the new history entry, or None when already there."""
        current = OrderStatus(self.status)
        target = parse_status(status)

        if target == current:
            return None
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        now = datetime.now(UTC)
        entry = OrderHistory(
            from_status=current.value,
            to_status=target.value,
            actor=actor,
            notes=notes or f"Status changed to {target.value}",
            tracking_number=tracking_number,
            restock_type=restock_type,
            created_at=now,
        )
        self.status = target.value
        if tracking_number:
            self.tracking_number = tracking_number
        self.updated_at = now
        self.add_history(entry)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                buyer_id=str(self.buyer_id),
                from_status=current.value,
                to_status=target.value,
                actor=actor,
                tracking_number=tracking_number,
            )
        )
        return entry

    def mark_restocked(self, restock_type, units):
        self.raise_(OrderRestocked(order_id=str(self.id), restock_type=restock_type, units=units))
