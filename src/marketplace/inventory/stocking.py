"""Stock administration: opening locations and manual corrections."""

from protean import handle
from protean.fields import Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.inventory.inventory import Inventory
from marketplace.inventory.ledger import InventoryLedger


@marketplace.command(part_of="Inventory")
class OpenStockLocation:
    sku_id = Identifier(required=True)
    location = String(required=True, max_length=100)
    initial_stock = Integer(default=0, min_value=0)


@marketplace.command(part_of="Inventory")
class AdjustStock:
    inventory_id = Identifier(required=True)
    quantity_change = Integer(required=True)
    note = String(required=True, max_length=500)


@marketplace.command_handler(part_of=Inventory)
class StockAdministrationHandler:
    @handle(OpenStockLocation)
    def open_location(self, command):
        inventory = InventoryLedger().open_location(
            sku_id=command.sku_id,
            location=command.location,
            initial_stock=command.initial_stock or 0,
        )
        return str(inventory.id)

    @handle(AdjustStock)
    def adjust_stock(self, command):
        inventory = InventoryLedger().adjust(
            inventory_id=command.inventory_id,
            quantity_change=command.quantity_change,
            note=command.note,
        )
        return inventory.stock
