"""Configurable fake payment gateway for development and testing.

Simulates a card processor without any external calls. Each operation can be
told to decline, and every call is recorded for assertions.
"""

from uuid import uuid4

from marketplace.payment.gateway.port import (
    AuthorizationResult,
    CaptureResult,
    PaymentGateway,
    RefundResult,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.declines: dict[str, tuple[str, str]] = {}
        self.calls: list[dict] = []

    def decline(self, operation: str, failure_code: str = "card_declined", failure_reason: str = "Card declined"):
        """Make ``operation`` ("authorize", "capture" or "refund") fail until reset."""
        self.declines[operation] = (failure_code, failure_reason)

    def reset(self) -> None:
        self.declines.clear()
        self.calls.clear()

    def authorize(self, amount, currency, payment_method, idempotency_key) -> AuthorizationResult:
        self.calls.append(
            {
                "method": "authorize",
                "amount": amount,
                "currency": currency,
                "payment_method": payment_method,
                "idempotency_key": idempotency_key,
            }
        )

        if "authorize" in self.declines:
            failure_code, failure_reason = self.declines["authorize"]
            return AuthorizationResult(success=False, failure_code=failure_code, failure_reason=failure_reason)
        return AuthorizationResult(success=True, provider_reference=f"fake_auth_{uuid4().hex[:12]}")

    def capture(self, provider_reference, amount, currency) -> CaptureResult:
        self.calls.append(
            {
                "method": "capture",
                "provider_reference": provider_reference,
                "amount": amount,
                "currency": currency,
            }
        )

        if "capture" in self.declines:
            failure_code, failure_reason = self.declines["capture"]
            return CaptureResult(success=False, failure_code=failure_code, failure_reason=failure_reason)
        return CaptureResult(success=True)

    def refund(self, provider_reference, amount, currency, reason, idempotency_key) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "provider_reference": provider_reference,
                "amount": amount,
                "currency": currency,
                "reason": reason,
                "idempotency_key": idempotency_key,
            }
        )

        if "refund" in self.declines:
            _, failure_reason = self.declines["refund"]
            return RefundResult(success=False, failure_reason=failure_reason)
        return RefundResult(success=True, provider_reference=f"fake_ref_{uuid4().hex[:12]}")
