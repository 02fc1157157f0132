"""Inventory aggregates: stock counters and the movement log behind them.

An ``Inventory`` holds the stock of one SKU at one location. Every change to
that counter is paired with an ``InventoryTransaction`` whose signed quantity
equals the change, so summing the log for a SKU always gives its total stock.
Transactions are written once and never touched again.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock
from marketplace.inventory.events import (
    InventoryStocked,
    StockAdjusted,
    StockReplenished,
    StockSold,
)


class TransactionType(Enum):
    SALE = "SALE"
    CANCELLATION = "CANCELLATION"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"


RESTOCK_TYPES = (TransactionType.CANCELLATION, TransactionType.RETURN)


@marketplace.aggregate
class Inventory:
    sku_id = Identifier(required=True)
    location = String(required=True, max_length=100)
    stock = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, sku_id, location, initial_stock=0):
        if initial_stock < 0:
            raise ValidationError({"initial_stock": ["Initial stock cannot be negative"]})

        now = datetime.now(UTC)
        inventory = cls(
            sku_id=sku_id,
            location=location,
            stock=initial_stock,
            created_at=now,
            updated_at=now,
        )
        inventory.raise_(
            InventoryStocked(
                inventory_id=str(inventory.id),
                sku_id=str(sku_id),
                location=location,
                initial_stock=initial_stock,
            )
        )
        return inventory

    def withdraw(self, quantity, order_id=None):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if self.stock < quantity:
            raise InsufficientStock(self.sku_id, self.stock, quantity)

        self.stock -= quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockSold(
                inventory_id=str(self.id),
                sku_id=str(self.sku_id),
                order_id=str(order_id) if order_id else None,
                quantity=quantity,
                stock=self.stock,
            )
        )

    def replenish(self, quantity, reason, order_id=None):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.stock += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockReplenished(
                inventory_id=str(self.id),
                sku_id=str(self.sku_id),
                order_id=str(order_id) if order_id else None,
                quantity=quantity,
                reason=TransactionType(reason).value,
                stock=self.stock,
            )
        )

    def adjust(self, quantity_change, note):
        if not note:
            raise ValidationError({"note": ["A note is required for stock adjustments"]})
        if quantity_change == 0:
            raise ValidationError({"quantity_change": ["Adjustment must change the stock"]})

        new_stock = self.stock + quantity_change
        if new_stock < 0:
            raise ValidationError({"quantity_change": [f"Adjustment would result in negative stock: {new_stock}"]})

        self.stock = new_stock
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockAdjusted(
                inventory_id=str(self.id),
                sku_id=str(self.sku_id),
                quantity_change=quantity_change,
                note=note,
                stock=self.stock,
            )
        )


@marketplace.aggregate
class InventoryTransaction:
    inventory_id = Identifier(required=True)
    sku_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    transaction_type = String(required=True, choices=TransactionType)
    note = String(max_length=500)
    created_at = DateTime(required=True)

    @invariant.post
    def quantity_cannot_be_zero(self):
        if self.quantity == 0:
            raise ValidationError({"quantity": ["A stock movement cannot be zero"]})

    @classmethod
    def record(cls, inventory, quantity, transaction_type, order_id=None, note=None):
        return cls(
            inventory_id=str(inventory.id),
            sku_id=str(inventory.sku_id),
            order_id=str(order_id) if order_id else None,
            quantity=quantity,
            transaction_type=TransactionType(transaction_type).value,
            note=note,
            created_at=datetime.now(UTC),
        )
