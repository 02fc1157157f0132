"""Domain events for the Inventory aggregate."""

from protean.fields import Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Inventory")
class InventoryStocked:
    """A new stock location was opened for a SKU."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    sku_id = Identifier(required=True)
    location = String(required=True)
    initial_stock = Integer(required=True)


@marketplace.event(part_of="Inventory")
class StockSold:
    """Units left a location against an order."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    sku_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    stock = Integer(required=True)


@marketplace.event(part_of="Inventory")
class StockReplenished:
    """Units came back to a location after a cancellation or return."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    sku_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    reason = String(required=True)
    stock = Integer(required=True)


@marketplace.event(part_of="Inventory")
class StockAdjusted:
    """Stock was corrected by hand."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    sku_id = Identifier(required=True)
    quantity_change = Integer(required=True)
    note = String(required=True)
    stock = Integer(required=True)
