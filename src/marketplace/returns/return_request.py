"""Return requests: one per order item, within the return window.

Completing a return puts the returned units back in stock and moves the
order to RETURNED when its lifecycle allows it. Units a refund or
cancellation already restocked are not restocked again.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import Conflict, Forbidden, InvalidTransition, NotFound
from marketplace.inventory.inventory import TransactionType
from marketplace.inventory.ledger import InventoryLedger
from marketplace.order.lifecycle import transition_order
from marketplace.order.order import Order, OrderStatus
from marketplace.settings import RETURN_WINDOW_DAYS

logger = structlog.get_logger(__name__)


class ReturnStatus(Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class ReturnDecision(Enum):
    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE = "complete"


_RETURNABLE_ORDER_STATUSES = {OrderStatus.SHIPPED, OrderStatus.DELIVERED}


@marketplace.aggregate
class ReturnRequest:
    order_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    sku_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    reason = String(max_length=255)
    notes = Text()
    status = String(choices=ReturnStatus, default=ReturnStatus.REQUESTED.value)
    resolved_by = String(max_length=255)
    created_at = DateTime()
    resolved_at = DateTime()

    def _resolve(self, expected, target, actor, notes=None):
        if ReturnStatus(self.status) != expected:
            raise InvalidTransition(self.status, target.value, subject="return")
        self.status = target.value
        self.resolved_by = actor
        self.resolved_at = datetime.now(UTC)
        if notes:
            self.notes = notes

    def approve(self, actor, notes=None):
        self._resolve(ReturnStatus.REQUESTED, ReturnStatus.APPROVED, actor, notes)

    def reject(self, actor, notes=None):
        self._resolve(ReturnStatus.REQUESTED, ReturnStatus.REJECTED, actor, notes)

    def complete(self, actor, notes=None):
        self._resolve(ReturnStatus.APPROVED, ReturnStatus.COMPLETED, actor, notes)


@marketplace.command(part_of="ReturnRequest")
class RequestReturn:
    order_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    quantity = Integer(min_value=1)
    reason = String(max_length=255)
    notes = Text()


@marketplace.command(part_of="ReturnRequest")
class ResolveReturn:
    return_id = Identifier(required=True)
    decision = String(required=True, choices=ReturnDecision)
    actor = String(max_length=255)
    notes = Text()


def within_return_window(order, now=None) -> bool:
    now = now or datetime.now(UTC)
    return now - order.created_at <= timedelta(days=RETURN_WINDOW_DAYS)


@marketplace.command_handler(part_of=ReturnRequest)
class ReturnRequestHandler:
    @handle(RequestReturn)
    def request_return(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if str(order.buyer_id) != str(command.buyer_id):
            raise Forbidden("Only the buyer can return items from this order")
        if OrderStatus(order.status) not in _RETURNABLE_ORDER_STATUSES:
            raise ValidationError({"order_id": [f"Orders in {order.status} status cannot be returned"]})
        if not within_return_window(order):
            raise ValidationError({"order_id": [f"The {RETURN_WINDOW_DAYS}-day return window has closed"]})

        item = next((item for item in order.items if str(item.id) == str(command.order_item_id)), None)
        if item is None:
            raise NotFound(f"Item {command.order_item_id} is not part of order {order.order_number}")

        quantity = command.quantity or item.quantity
        if quantity > item.quantity:
            raise ValidationError({"quantity": [f"Only {item.quantity} units were ordered"]})

        repo = current_domain.repository_for(ReturnRequest)
        if repo._dao.query.filter(order_item_id=str(item.id)).all().items:
            raise Conflict("A return was already requested for this item", order_item_id=str(item.id))

        request = ReturnRequest(
            order_id=str(order.id),
            order_item_id=str(item.id),
            sku_id=str(item.sku_id),
            buyer_id=str(command.buyer_id),
            quantity=quantity,
            reason=command.reason,
            notes=command.notes,
            status=ReturnStatus.REQUESTED.value,
            created_at=datetime.now(UTC),
        )
        repo.add(request)
        return str(request.id)

    @handle(ResolveReturn)
    def resolve_return(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        request = repo.get(command.return_id)

        decision = ReturnDecision(command.decision)
        if decision == ReturnDecision.APPROVE:
            request.approve(command.actor, command.notes)
        elif decision == ReturnDecision.REJECT:
            request.reject(command.actor, command.notes)
        else:
            request.complete(command.actor, command.notes)
            self._restock(request, command.actor)

        repo.add(request)
        return request.status

    def _restock(self, request, actor):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(request.order_id)
        ledger = InventoryLedger()

        # A refund or cancellation may already have put these units back
        item = next(item for item in order.items if str(item.id) == str(request.order_item_id))
        outstanding = item.quantity - ledger.restocked_for_order(order.id, request.sku_id)
        units = min(request.quantity, outstanding)
        if units > 0:
            ledger.increment(
                request.sku_id,
                units,
                reason=TransactionType.RETURN,
                order_id=str(order.id),
                note=f"Return of order {order.order_number}",
            )
        else:
            logger.info(
                "Return completed without restock",
                return_id=str(request.id),
                order_id=str(order.id),
                order_status=order.status,
            )

        if order.can_transition_to(OrderStatus.RETURNED):
            transition_order(order, OrderStatus.RETURNED, actor=actor, notes="Items returned")
            order_repo.add(order)
