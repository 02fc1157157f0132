"""Order status changes with their inventory side effects.

Landing on CANCELLED or REFUNDED puts every line back in stock, once per
order. Only the units not already returned for that order are restocked, so
a partial return followed by a refund never double-counts.
"""

import structlog

from marketplace.inventory.inventory import TransactionType
from marketplace.inventory.ledger import InventoryLedger
from marketplace.order.order import OrderStatus, parse_status

logger = structlog.get_logger(__name__)

RESTOCK_ON = {
    OrderStatus.CANCELLED: TransactionType.CANCELLATION,
    OrderStatus.REFUNDED: TransactionType.RETURN,
}


def transition_order(order, status, actor=None, notes=None, tracking_number=None, ledger=None):
    """Apply a status change to ``order`` and restock if it calls for it.

    Returns the new history entry, or None for a same-status request. The
    caller persists the order.
    """
    target = parse_status(status)
    restock = RESTOCK_ON.get(target)
    if restock is not None and order.has_restocked:
        restock = None

    entry = order.transition_to(
        target,
        actor=actor,
        notes=notes,
        tracking_number=tracking_number,
        restock_type=restock.value if restock else None,
    )
    if entry is not None and restock is not None:
        restock_order(order, restock, ledger or InventoryLedger())
    return entry


def restock_order(order, reason, ledger) -> int:
    units = 0
    for item in order.items:
        outstanding = item.quantity - ledger.restocked_for_order(order.id, item.sku_id)
        if outstanding <= 0:
            continue
        ledger.increment(
            item.sku_id,
            outstanding,
            reason=reason,
            order_id=str(order.id),
            note=f"{reason.value.title()} of order {order.order_number}",
        )
        units += outstanding

    order.mark_restocked(reason.value, units)
    logger.info(
        "Order restocked",
        order_id=str(order.id),
        order_number=order.order_number,
        restock_type=reason.value,
        units=units,
    )
    return units
