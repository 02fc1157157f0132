"""Marketplace bounded context: carts, checkout, orders, payments and stock.

Checkout, status changes, captures and refunds each write Order, Inventory
and Payment records inside one unit of work, so all of them live in a single
domain. Aggregates are plain CQRS aggregates; the inventory transaction log
is the audit trail for stock.
"""

import structlog
from protean.domain import Domain

from marketplace.utils.logging import configure_logging

configure_logging()

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
