"""Payment refunds: command and handler.

A refund that brings the balance to zero also settles the order: REFUNDED
when its lifecycle allows it, CANCELLED when only cancellation does (an order
refunded before it was paid or shipped). Either way the order's lines go back
to stock. Orders already CANCELLED or REFUNDED are left alone; any other
order status blocks the refund before the gateway is called.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import GatewayError, InvalidTransition
from marketplace.order.lifecycle import transition_order
from marketplace.order.order import Order, OrderStatus
from marketplace.payment.gateway import get_gateway
from marketplace.payment.payment import Payment

logger = structlog.get_logger(__name__)

_SETTLED_ORDER_STATUSES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}


@marketplace.command(part_of="Payment")
class RefundPayment:
    payment_id = Identifier(required=True)
    amount = Float()  # Empty means the whole remaining balance
    reason = String(max_length=500, default="Requested by seller")
    processed_by = String(max_length=255)
    idempotency_key = String(max_length=255)


def order_status_after_full_refund(order):
    current = OrderStatus(order.status)
    if current in _SETTLED_ORDER_STATUSES:
        return None
    if order.can_transition_to(OrderStatus.REFUNDED):
        return OrderStatus.REFUNDED
    if order.can_transition_to(OrderStatus.CANCELLED):
        return OrderStatus.CANCELLED
    raise InvalidTransition(current.value, OrderStatus.REFUNDED.value)


def _refund_result(payment, refund):
    return {
        "payment_id": str(payment.id),
        "refund_id": str(refund.id),
        "status": payment.status,
        "refunded_amount": refund.amount,
        "refunded_at": refund.processed_at,
        "total_refunded": payment.total_refunded,
    }


@marketplace.command_handler(part_of=Payment)
class PaymentRefundHandler:
    @handle(RefundPayment)
    def refund(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)

        existing = payment.refund_for_key(command.idempotency_key)
        if existing is not None:
            return _refund_result(payment, existing)

        amount = payment.validate_refund(command.amount)

        order_repo = current_domain.repository_for(Order)
        order = None
        order_target = None
        if amount == payment.refundable_balance:
            order = order_repo.get(payment.order_id)
            order_target = order_status_after_full_refund(order)

        result = get_gateway().refund(
            provider_reference=payment.provider_reference,
            amount=float(amount),
            currency=payment.currency,
            reason=command.reason,
            idempotency_key=command.idempotency_key or f"{payment.id}-refund-{len(payment.refunds) + 1}",
        )
        if not result.success:
            raise GatewayError(result.failure_reason or "Refund declined", payment_id=str(payment.id))

        refund = payment.refund(
            amount=amount,
            reason=command.reason,
            processed_by=command.processed_by,
            provider_reference=result.provider_reference,
            idempotency_key=command.idempotency_key,
        )
        repo.add(payment)

        if order_target is not None:
            transition_order(
                order,
                order_target,
                actor=command.processed_by,
                notes=f"Payment refunded: {command.reason}",
            )
            order_repo.add(order)

        logger.info(
            "Payment refunded",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            amount=refund.amount,
            status=payment.status,
        )
        return _refund_result(payment, refund)
