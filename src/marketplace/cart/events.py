"""Domain events for the Cart aggregate."""

from protean.fields import Float, Identifier, Integer

from marketplace.domain import marketplace


@marketplace.event(part_of="Cart")
class CartItemAdded:
    """A SKU was added to the cart, or its quantity topped up."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    sku_id = Identifier(required=True)
    quantity = Integer(required=True)
    price_at = Float(required=True)


@marketplace.event(part_of="Cart")
class CartItemUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@marketplace.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    sku_id = Identifier(required=True)


@marketplace.event(part_of="Cart")
class CartCleared:
    """Every line was removed, usually by a successful checkout."""

    __version__ = 1

    cart_id = Identifier(required=True)
    items_removed = Integer(required=True)


@marketplace.event(part_of="Cart")
class CartRequoted:
    """Price snapshots were refreshed from the live catalog."""

    __version__ = 1

    cart_id = Identifier(required=True)
    lines_repriced = Integer(required=True)
