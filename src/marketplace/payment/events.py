"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Payment")
class PaymentAuthorized:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    provider_reference = String()
    authorized_at = DateTime(required=True)


@marketplace.event(part_of="Payment")
class PaymentCaptured:
    """Funds were collected; the order can now be fulfilled."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    paid_at = DateTime(required=True)


@marketplace.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    failure_code = String()
    failure_reason = String()


@marketplace.event(part_of="Payment")
class PaymentRefunded:
    """Money went back to the buyer, in part or in full."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    amount = Float(required=True)
    total_refunded = Float(required=True)
    status = String(required=True)
    reason = String()
