"""Inventory ledger: the only way stock moves.

Callers must already be inside a unit of work (command handlers are); the
counter update and its transaction row then commit or roll back together.
"""

from collections import defaultdict

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from marketplace.errors import Conflict, InsufficientStock
from marketplace.inventory.inventory import (
    RESTOCK_TYPES,
    Inventory,
    InventoryTransaction,
    TransactionType,
)
from marketplace.settings import DEFAULT_LOCATION, LOW_STOCK_THRESHOLD
from marketplace.utils.queries import fetch_all

logger = structlog.get_logger(__name__)


class InventoryLedger:
    def __init__(self):
        self.inventories = current_domain.repository_for(Inventory)
        self.transactions = current_domain.repository_for(InventoryTransaction)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def locations(self, sku_id) -> list[Inventory]:
        """Stock locations for a SKU, fullest first."""
        records = fetch_all(self.inventories._dao.query.filter(sku_id=str(sku_id)))
        return sorted(records, key=lambda inventory: (-inventory.stock, inventory.location))

    def total_stock(self, sku_id) -> int:
        return sum(inventory.stock for inventory in self.locations(sku_id))

    def movements(self, sku_id=None, order_id=None) -> list[InventoryTransaction]:
        criteria = {}
        if sku_id is not None:
            criteria["sku_id"] = str(sku_id)
        if order_id is not None:
            criteria["order_id"] = str(order_id)

        query = self.transactions._dao.query
        if criteria:
            query = query.filter(**criteria)
        return sorted(fetch_all(query), key=lambda movement: movement.created_at)

    def balance(self, sku_id) -> int:
        """Sum of every recorded movement; always equals ``total_stock``."""
        return sum(movement.quantity for movement in self.movements(sku_id=sku_id))

    def restocked_for_order(self, order_id, sku_id) -> int:
        return sum(
            movement.quantity
            for movement in self.movements(sku_id=sku_id, order_id=order_id)
            if TransactionType(movement.transaction_type) in RESTOCK_TYPES
        )

    def list_below_threshold(self, threshold: int = LOW_STOCK_THRESHOLD) -> list[dict]:
        if threshold is None or threshold < 0:
            raise ValidationError({"threshold": ["Threshold must be zero or more"]})

        totals = defaultdict(int)
        for inventory in fetch_all(self.inventories._dao.query):
            totals[str(inventory.sku_id)] += inventory.stock

        low = [
            {"sku_id": sku_id, "current_stock": stock, "threshold": threshold}
            for sku_id, stock in totals.items()
            if stock <= threshold
        ]
        return sorted(low, key=lambda row: (row["current_stock"], row["sku_id"]))

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def open_location(self, sku_id, location, initial_stock=0) -> Inventory:
        if any(inventory.location == location for inventory in self.locations(sku_id)):
            raise Conflict(f"SKU {sku_id} is already stocked at {location}", sku_id=str(sku_id), location=location)

        inventory = Inventory.create(sku_id=sku_id, location=location, initial_stock=initial_stock)
        self.inventories.add(inventory)
        if initial_stock:
            self._record(inventory, initial_stock, TransactionType.ADJUSTMENT, note="Opening stock")
        return inventory

    def decrement(self, sku_id, quantity, order_id=None, note=None) -> int:
        """Take ``quantity`` units of a SKU, fullest location first; returns stock left."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        locations = self.locations(sku_id)
        available = sum(inventory.stock for inventory in locations)
        if available < quantity:
            logger.info(
                "Stock shortfall",
                sku_id=str(sku_id),
                available=available,
                requested=quantity,
                order_id=order_id,
            )
            raise InsufficientStock(sku_id, available, quantity)

        remaining = quantity
        for inventory in locations:
            if remaining == 0 or inventory.stock == 0:
                break
            taken = min(inventory.stock, remaining)
            inventory.withdraw(taken, order_id=order_id)
            self.inventories.add(inventory)
            self._record(inventory, -taken, TransactionType.SALE, order_id=order_id, note=note)
            remaining -= taken

        logger.info(
            "Stock decremented",
            sku_id=str(sku_id),
            quantity=quantity,
            order_id=order_id,
            stock=available - quantity,
        )
        return available - quantity

    def increment(self, sku_id, quantity, reason=TransactionType.RETURN, order_id=None, note=None) -> int:
        """Put ``quantity`` units back; returns stock after.

        Units return to the locations the order took them from, and anything
        beyond that to the fullest location (or a new default one).
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        reason = TransactionType(reason)
        if reason not in RESTOCK_TYPES:
            raise ValidationError({"reason": [f"{reason.value} is not a restock reason"]})

        locations = self.locations(sku_id)
        before = sum(inventory.stock for inventory in locations)

        for inventory, units in self._restock_plan(sku_id, locations, quantity, order_id):
            inventory.replenish(units, reason.value, order_id=order_id)
            self.inventories.add(inventory)
            self._record(inventory, units, reason, order_id=order_id, note=note)

        logger.info(
            "Stock restocked",
            sku_id=str(sku_id),
            quantity=quantity,
            reason=reason.value,
            order_id=order_id,
        )
        return before + quantity

    def adjust(self, inventory_id, quantity_change, note) -> Inventory:
        inventory = self.inventories.get(inventory_id)
        inventory.adjust(quantity_change, note)
        self.inventories.add(inventory)
        self._record(inventory, quantity_change, TransactionType.ADJUSTMENT, note=note)
        return inventory

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _restock_plan(self, sku_id, locations, quantity, order_id):
        by_id = {str(inventory.id): inventory for inventory in locations}
        plan = {}
        remaining = quantity

        if order_id:
            outstanding = defaultdict(int)
            for movement in self.movements(sku_id=sku_id, order_id=order_id):
                outstanding[str(movement.inventory_id)] -= movement.quantity
            for inventory_id, units in outstanding.items():
                if remaining == 0:
                    break
                if units <= 0 or inventory_id not in by_id:
                    continue
                taken = min(units, remaining)
                plan[inventory_id] = [by_id[inventory_id], taken]
                remaining -= taken

        if remaining:
            if locations:
                target = locations[0]
            else:
                target = Inventory.create(sku_id=sku_id, location=DEFAULT_LOCATION)
            entry = plan.setdefault(str(target.id), [target, 0])
            entry[1] += remaining

        return [tuple(entry) for entry in plan.values()]

    def _record(self, inventory, quantity, transaction_type, order_id=None, note=None):
        self.transactions.add(
            InventoryTransaction.record(
                inventory,
                quantity,
                transaction_type,
                order_id=order_id,
                note=note,
            )
        )
