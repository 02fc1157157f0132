"""Payment authorization: command and handler.

A declined authorization is not an error: the payment is recorded as FAILED
with the processor's failure code and the result is returned to the caller.
FAILED is terminal, so a still-PENDING order behind it is cancelled and its
stock released.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.lifecycle import transition_order
from marketplace.order.order import Order, OrderStatus
from marketplace.payment.gateway import get_gateway
from marketplace.payment.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)

_ALREADY_AUTHORIZED = {PaymentStatus.AUTHORIZED, PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED}


@marketplace.command(part_of="Payment")
class AuthorizePayment:
    payment_id = Identifier(required=True)


def release_unpaid_order(payment, actor=None):
    """Cancel the PENDING order of a FAILED payment; other statuses are left as they are."""
    order_repo = current_domain.repository_for(Order)
    order = order_repo.get(payment.order_id)
    if OrderStatus(order.status) != OrderStatus.PENDING:
        return None

    transition_order(
        order,
        OrderStatus.CANCELLED,
        actor=actor,
        notes=f"Payment {payment.id} failed: {payment.failure_code}",
    )
    order_repo.add(order)
    logger.info("Unpaid order cancelled", order_id=str(order.id), payment_id=str(payment.id))
    return order


def _authorization_result(payment):
    return {
        "payment_id": str(payment.id),
        "status": payment.status,
        "authorized_at": payment.authorized_at,
        "failure_code": payment.failure_code,
    }


@marketplace.command_handler(part_of=Payment)
class PaymentAuthorizationHandler:
    @handle(AuthorizePayment)
    def authorize(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        if PaymentStatus(payment.status) in _ALREADY_AUTHORIZED:
            return _authorization_result(payment)

        result = get_gateway().authorize(
            amount=payment.amount,
            currency=payment.currency,
            payment_method=payment.payment_method,
            idempotency_key=str(payment.id),
        )
        if result.success:
            payment.authorize(result.provider_reference)
        else:
            payment.fail(result.failure_code, result.failure_reason)
            logger.warning(
                "Payment authorization declined",
                payment_id=str(payment.id),
                order_id=str(payment.order_id),
                failure_code=result.failure_code,
            )
            release_unpaid_order(payment)

        repo.add(payment)
        return _authorization_result(payment)
