"""Domain events for the Order aggregate."""

from protean.fields import Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """Checkout produced a new order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    store_id = Identifier(required=True)
    item_count = Integer(required=True)
    total = Float(required=True)
    currency = String(required=True)


@marketplace.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    actor = String()
    tracking_number = String()


@marketplace.event(part_of="Order")
class OrderRestocked:
    """Every line of a cancelled or refunded order went back to stock."""

    __version__ = 1

    order_id = Identifier(required=True)
    restock_type = String(required=True)
    units = Integer(required=True)
