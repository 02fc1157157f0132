"""Buyer notifications for order and payment events."""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.notifications.notifier import dispatch
from marketplace.order.events import OrderPlaced, OrderStatusChanged
from marketplace.order.order import Order
from marketplace.payment.events import PaymentCaptured, PaymentFailed, PaymentRefunded
from marketplace.payment.payment import Payment

logger = structlog.get_logger(__name__)


@marketplace.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        dispatch(
            event.buyer_id,
            "order_confirmation",
            order_id=str(event.order_id),
            order_number=event.order_number,
            total=event.total,
            currency=event.currency,
        )

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        dispatch(
            event.buyer_id,
            "order_status_update",
            order_id=str(event.order_id),
            order_number=event.order_number,
            status=event.to_status,
            tracking_number=event.tracking_number,
        )


def _buyer_for(order_id):
    order = current_domain.repository_for(Order).get(order_id)
    return order.buyer_id, order.order_number


@marketplace.event_handler(part_of=Payment)
class PaymentNotificationHandler:
    @handle(PaymentCaptured)
    def on_payment_captured(self, event: PaymentCaptured) -> None:
        buyer_id, order_number = _buyer_for(event.order_id)
        dispatch(
            buyer_id,
            "payment_receipt",
            order_number=order_number,
            amount=event.amount,
            currency=event.currency,
        )

    @handle(PaymentFailed)
    def on_payment_failed(self, event: PaymentFailed) -> None:
        buyer_id, order_number = _buyer_for(event.order_id)
        dispatch(
            buyer_id,
            "payment_failed",
            order_number=order_number,
            failure_reason=event.failure_reason,
        )

    @handle(PaymentRefunded)
    def on_payment_refunded(self, event: PaymentRefunded) -> None:
        buyer_id, order_number = _buyer_for(event.order_id)
        logger.info("Notifying buyer of refund", order_number=order_number, amount=event.amount)
        dispatch(
            buyer_id,
            "refund_notification",
            order_number=order_number,
            amount=event.amount,
            status=event.status,
        )
