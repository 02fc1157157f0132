"""Application tests for the inventory ledger and stock administration commands."""

import pytest
from marketplace.errors import Conflict, InsufficientStock
from marketplace.inventory.inventory import TransactionType
from marketplace.inventory.ledger import InventoryLedger
from marketplace.inventory.stocking import AdjustStock
from protean import current_domain
from protean.exceptions import ValidationError


@pytest.fixture
def ledger():
    return InventoryLedger()


class TestOpeningStock:
    def test_opening_stock_is_logged(self, seed, ledger):
        sku_id = seed.sku(stock=7)

        assert ledger.total_stock(sku_id) == 7
        movements = ledger.movements(sku_id=sku_id)
        assert [(m.transaction_type, m.quantity, m.note) for m in movements] == [("ADJUSTMENT", 7, "Opening stock")]

    def test_empty_location_has_no_movement(self, seed, ledger):
        sku_id = seed.sku()
        seed.location(sku_id, "main", 0)

        assert ledger.total_stock(sku_id) == 0
        assert ledger.movements(sku_id=sku_id) == []

    def test_location_opened_once(self, seed):
        sku_id = seed.sku(stock=1, location="main")
        with pytest.raises(Conflict):
            seed.location(sku_id, "main", 3)


class TestDecrementAndIncrement:
    def test_decrement_takes_fullest_location_first(self, seed, ledger):
        sku_id = seed.sku(stock=2, location="main")
        seed.location(sku_id, "backup", 5)

        assert ledger.decrement(sku_id, 6, order_id="order-1") == 1

        sales = [m for m in ledger.movements(sku_id=sku_id) if m.transaction_type == "SALE"]
        assert sorted(m.quantity for m in sales) == [-5, -1]
        assert ledger.balance(sku_id) == ledger.total_stock(sku_id) == 1

    def test_decrement_beyond_total(self, seed, ledger):
        sku_id = seed.sku(stock=2)
        with pytest.raises(InsufficientStock) as exc:
            ledger.decrement(sku_id, 3)

        assert exc.value.available == 2
        assert exc.value.requested == 3
        assert ledger.total_stock(sku_id) == 2

    def test_increment_returns_units_where_they_were_taken(self, seed, ledger):
        sku_id = seed.sku(stock=2, location="main")
        seed.location(sku_id, "backup", 5)
        ledger.decrement(sku_id, 6, order_id="order-1")

        ledger.increment(sku_id, 6, reason=TransactionType.CANCELLATION, order_id="order-1")

        stock = {inventory.location: inventory.stock for inventory in ledger.locations(sku_id)}
        assert stock == {"main": 2, "backup": 5}
        assert ledger.restocked_for_order("order-1", sku_id) == 6

    def test_increment_without_locations_opens_default(self, seed, ledger):
        sku_id = seed.sku()

        assert ledger.increment(sku_id, 2) == 2
        assert [inventory.location for inventory in ledger.locations(sku_id)] == ["default"]
        assert ledger.balance(sku_id) == 2

    def test_sale_is_not_a_restock_reason(self, seed, ledger):
        sku_id = seed.sku(stock=1)
        with pytest.raises(ValidationError):
            ledger.increment(sku_id, 1, reason=TransactionType.SALE)

    def test_non_positive_quantities(self, seed, ledger):
        sku_id = seed.sku(stock=1)
        with pytest.raises(ValidationError):
            ledger.decrement(sku_id, 0)
        with pytest.raises(ValidationError):
            ledger.increment(sku_id, -1)


class TestAdjustments:
    def test_adjust_stock_command(self, seed, ledger):
        sku_id = seed.sku(stock=4)
        inventory_id = str(ledger.locations(sku_id)[0].id)

        stock = current_domain.process(
            AdjustStock(inventory_id=inventory_id, quantity_change=-3, note="Water damage"),
            asynchronous=False,
        )

        assert stock == 1
        assert ledger.balance(sku_id) == 1

    def test_adjustment_below_zero(self, seed, ledger):
        sku_id = seed.sku(stock=1)
        inventory_id = str(ledger.locations(sku_id)[0].id)

        with pytest.raises(ValidationError):
            current_domain.process(
                AdjustStock(inventory_id=inventory_id, quantity_change=-2, note="Count"),
                asynchronous=False,
            )
        assert ledger.total_stock(sku_id) == 1


class TestLowStock:
    def test_lists_skus_at_or_below_threshold(self, seed, ledger):
        low = seed.sku(stock=3)
        seed.sku(stock=15)
        empty = seed.sku()
        seed.location(empty, "main", 0)
        edge = seed.sku(stock=10)

        rows = ledger.list_below_threshold(10)

        assert [row["sku_id"] for row in rows] == [empty, low, edge]
        assert rows[0] == {"sku_id": empty, "current_stock": 0, "threshold": 10}

    def test_sums_across_locations(self, seed, ledger):
        sku_id = seed.sku(stock=6, location="main")
        seed.location(sku_id, "backup", 6)

        assert ledger.list_below_threshold(10) == []

    def test_negative_threshold(self, ledger):
        with pytest.raises(ValidationError):
            ledger.list_below_threshold(-1)
