"""Payment aggregate: one payment per order, with its refunds.

State machine:
    PENDING            -> AUTHORIZED, FAILED
    AUTHORIZED         -> PAID, FAILED, REFUNDED, PARTIALLY_REFUNDED
    PAID               -> REFUNDED, PARTIALLY_REFUNDED
    PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED, REFUNDED
    FAILED, REFUNDED are terminal

The sum of refunds never exceeds the payment amount.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String

from marketplace.domain import marketplace
from marketplace.errors import InvalidAmount, InvalidTransition
from marketplace.payment.events import (
    PaymentAuthorized,
    PaymentCaptured,
    PaymentFailed,
    PaymentRefunded,
)
from marketplace.settings import CURRENCY
from marketplace.utils.money import money, quantize


class PaymentStatus(Enum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class RefundStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.AUTHORIZED, PaymentStatus.FAILED},
    PaymentStatus.AUTHORIZED: {
        PaymentStatus.PAID,
        PaymentStatus.FAILED,
        PaymentStatus.REFUNDED,
        PaymentStatus.PARTIALLY_REFUNDED,
    },
    PaymentStatus.PAID: {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED},
    PaymentStatus.PARTIALLY_REFUNDED: {PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}

REFUNDABLE_STATUSES = {PaymentStatus.AUTHORIZED, PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED}


@marketplace.entity(part_of="Payment")
class Refund:
    amount = Float(required=True, min_value=0.01)
    reason = String(max_length=500)
    status = String(choices=RefundStatus, default=RefundStatus.PENDING.value)
    processed_by = String(max_length=255)
    processed_at = DateTime()
    provider_reference = String(max_length=255)
    idempotency_key = String(max_length=255)


@marketplace.aggregate
class Payment:
    order_id = Identifier(required=True)
    provider = String(max_length=50)
    provider_reference = String(max_length=255)
    payment_method = String(max_length=50)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    currency = String(max_length=3, default=CURRENCY)
    amount = Float(required=True, min_value=0.0)
    total_refunded = Float(default=0.0)
    authorized_at = DateTime()
    paid_at = DateTime()
    failure_code = String(max_length=100)
    failure_reason = String(max_length=500)
    refunds = HasMany(Refund)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def refunds_cannot_exceed_amount(self):
        if quantize(self.total_refunded or 0) > quantize(self.amount):
            raise ValidationError({"total_refunded": ["Refunds cannot exceed the payment amount"]})

    @classmethod
    def create(cls, order_id, amount, payment_method, provider, currency=CURRENCY):
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
            provider=provider,
            status=PaymentStatus.PENDING.value,
            total_refunded=0.0,
            created_at=now,
            updated_at=now,
        )

    def _transition(self, target: PaymentStatus) -> None:
        current = PaymentStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value, subject="payment")
        self.status = target.value
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Authorization and capture
    # -------------------------------------------------------------------
    def authorize(self, provider_reference):
        self._transition(PaymentStatus.AUTHORIZED)
        self.provider_reference = provider_reference
        self.authorized_at = self.updated_at

        self.raise_(
            PaymentAuthorized(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                amount=self.amount,
                currency=self.currency,
                provider_reference=provider_reference,
                authorized_at=self.authorized_at,
            )
        )

    def fail(self, failure_code, failure_reason=None):
        self._transition(PaymentStatus.FAILED)
        self.failure_code = failure_code
        self.failure_reason = failure_reason

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                failure_code=failure_code,
                failure_reason=failure_reason,
            )
        )

    def capture(self) -> bool:
        """Mark the authorized funds collected. Returns False when already PAID."""
        if PaymentStatus(self.status) == PaymentStatus.PAID:
            return False

        self._transition(PaymentStatus.PAID)
        self.paid_at = self.updated_at

        self.raise_(
            PaymentCaptured(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                amount=self.amount,
                currency=self.currency,
                paid_at=self.paid_at,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    @property
    def refundable_balance(self) -> Decimal:
        return quantize(self.amount) - quantize(self.total_refunded or 0)

    def refund_for_key(self, idempotency_key):
        if not idempotency_key:
            return None
        return next((refund for refund in self.refunds if refund.idempotency_key == idempotency_key), None)

    def validate_refund(self, amount=None) -> Decimal:
        """Check a refund request and return the amount it resolves to.

        ``None`` means the whole remaining balance.
        """
        current = PaymentStatus(self.status)
        if current not in REFUNDABLE_STATUSES:
            raise InvalidTransition(current.value, PaymentStatus.REFUNDED.value, subject="payment")

        balance = self.refundable_balance
        requested = balance if amount is None else quantize(amount)
        if requested <= 0:
            raise InvalidAmount("Refund amount must be positive", amount=float(requested))
        if requested > quantize(self.amount):
            raise InvalidAmount(
                "Refund amount cannot exceed the payment amount",
                amount=float(requested),
                payment_amount=self.amount,
            )
        if requested > balance:
            raise InvalidAmount(
                "Refund amount exceeds the remaining balance",
                amount=float(requested),
                refundable=float(balance),
            )
        return requested

    def refund(self, amount=None, reason=None, processed_by=None, provider_reference=None, idempotency_key=None):
        requested = self.validate_refund(amount)
        fully_refunded = requested == self.refundable_balance
        self._transition(PaymentStatus.REFUNDED if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED)

        refund = Refund(
            amount=float(requested),
            reason=reason,
            status=RefundStatus.COMPLETED.value,
            processed_by=processed_by,
            processed_at=self.updated_at,
            provider_reference=provider_reference,
            idempotency_key=idempotency_key,
        )
        self.add_refunds(refund)
        self.total_refunded = money(quantize(self.total_refunded or 0) + requested)

        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                refund_id=str(refund.id),
                amount=refund.amount,
                total_refunded=self.total_refunded,
                status=self.status,
                reason=reason,
            )
        )
        return refund
