"""Application tests for order status changes and their restocking side effects."""

import pytest
from marketplace.errors import InvalidTransition
from marketplace.inventory.ledger import InventoryLedger
from marketplace.order.order import Order
from marketplace.order.status import TransitionOrderStatus
from protean import current_domain
from protean.exceptions import ValidationError


def _transition(order_id, status, **kwargs):
    return current_domain.process(
        TransitionOrderStatus(order_id=order_id, status=status, actor="staff-1", **kwargs),
        asynchronous=False,
    )


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestTransitions:
    def test_history_records_each_step(self, seed):
        result = seed.order()

        _transition(result["order_id"], "PROCESSING")
        outcome = _transition(result["order_id"], "SHIPPED", tracking_number="1Z999")

        assert outcome["previous_status"] == "PROCESSING"
        assert outcome["status"] == "SHIPPED"
        order = _order(result["order_id"])
        assert order.tracking_number == "1Z999"
        steps = sorted(order.history, key=lambda entry: entry.created_at)
        assert [entry.to_status for entry in steps] == ["PENDING", "PROCESSING", "SHIPPED"]
        assert str(steps[-1].id) == outcome["history_entry_id"]

    def test_skipping_ahead_is_rejected(self, seed):
        result = seed.order()

        with pytest.raises(InvalidTransition):
            _transition(result["order_id"], "DELIVERED")
        assert _order(result["order_id"]).status == "PENDING"

    def test_unknown_status(self, seed):
        result = seed.order()
        with pytest.raises(ValidationError):
            _transition(result["order_id"], "MISPLACED")

    def test_same_status_is_noop(self, seed):
        result = seed.order()

        outcome = _transition(result["order_id"], "PENDING")

        assert outcome["previous_status"] == outcome["status"] == "PENDING"
        assert len(_order(result["order_id"]).history) == 1


class TestRestocking:
    def test_cancellation_restocks_every_line(self, seed):
        result = seed.order(lines=((10.0, 2, 5), (3.0, 3, 3)))
        sku_a, sku_b = result["sku_ids"]
        assert (seed.stock(sku_a), seed.stock(sku_b)) == (3, 0)

        _transition(result["order_id"], "CANCELLED", notes="Buyer changed their mind")

        assert (seed.stock(sku_a), seed.stock(sku_b)) == (5, 3)
        assert seed.balance(sku_a) == 5
        movements = InventoryLedger().movements(sku_id=sku_a, order_id=result["order_id"])
        assert [m.transaction_type for m in movements] == ["SALE", "CANCELLATION"]
        order = _order(result["order_id"])
        assert order.has_restocked
        assert order.latest_history().restock_type == "CANCELLATION"

    def test_repeated_cancel_restocks_once(self, seed):
        result = seed.order()
        sku_id = result["sku_ids"][0]

        _transition(result["order_id"], "CANCELLED")
        _transition(result["order_id"], "CANCELLED")

        assert seed.stock(sku_id) == 5

    def test_full_lifecycle_restocks_exactly_once(self, seed):
        result = seed.order()
        sku_id = result["sku_ids"][0]

        for status in ("PAID", "PROCESSING", "SHIPPED", "DELIVERED", "RETURNED", "REFUNDED"):
            _transition(result["order_id"], status)

        assert seed.stock(sku_id) == 5
        assert seed.balance(sku_id) == 5
        assert InventoryLedger().restocked_for_order(result["order_id"], sku_id) == 2

    def test_terminal_status_cannot_be_left(self, seed):
        result = seed.order()
        _transition(result["order_id"], "CANCELLED")

        with pytest.raises(InvalidTransition):
            _transition(result["order_id"], "PROCESSING")
