"""Payment capture: command and handler.

Capturing an already PAID payment is a no-op. Payments of CANCELLED or
REFUNDED orders are refused before the gateway is called. A successful
capture advances the order to PAID when its lifecycle allows it; a declined
one fails the payment and releases a still-PENDING order.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.order.lifecycle import transition_order
from marketplace.order.order import Order, OrderStatus
from marketplace.payment.authorization import release_unpaid_order
from marketplace.payment.gateway import get_gateway
from marketplace.payment.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)

_CLOSED_ORDER_STATUSES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}


@marketplace.command(part_of="Payment")
class CapturePayment:
    payment_id = Identifier(required=True)
    actor = String(max_length=255)


def _capture_result(payment):
    return {
        "payment_id": str(payment.id),
        "status": payment.status,
        "captured_amount": payment.amount if payment.status == PaymentStatus.PAID.value else 0.0,
        "captured_at": payment.paid_at,
        "failure_code": payment.failure_code,
    }


@marketplace.command_handler(part_of=Payment)
class PaymentCaptureHandler:
    @handle(CapturePayment)
    def capture(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)

        current = PaymentStatus(payment.status)
        if current == PaymentStatus.PAID:
            return _capture_result(payment)
        if current != PaymentStatus.AUTHORIZED:
            raise InvalidTransition(current.value, PaymentStatus.PAID.value, subject="payment")

        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(payment.order_id)
        if OrderStatus(order.status) in _CLOSED_ORDER_STATUSES:
            raise InvalidTransition(order.status, OrderStatus.PAID.value)

        result = get_gateway().capture(payment.provider_reference, payment.amount, payment.currency)
        if not result.success:
            payment.fail(result.failure_code, result.failure_reason)
            repo.add(payment)
            logger.warning(
                "Payment capture declined",
                payment_id=str(payment.id),
                failure_code=result.failure_code,
            )
            release_unpaid_order(payment, actor=command.actor)
            return _capture_result(payment)

        payment.capture()
        repo.add(payment)

        if order.can_transition_to(OrderStatus.PAID):
            transition_order(
                order,
                OrderStatus.PAID,
                actor=command.actor,
                notes=f"Payment {payment.id} captured",
            )
            order_repo.add(order)

        logger.info(
            "Payment captured",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            amount=payment.amount,
        )
        return _capture_result(payment)
