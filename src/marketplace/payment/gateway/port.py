"""Payment gateway port (abstract interface).

The domain talks to card processors only through this contract, so the fake
adapter used in development and tests can be swapped for a real processor
without touching the payment handlers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class AuthorizationResult:
    success: bool
    provider_reference: str | None = None
    failure_code: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class CaptureResult:
    success: bool
    failure_code: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    provider_reference: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name = "gateway"

    @abstractmethod
    def authorize(
        self,
        amount: float,
        currency: str,
        payment_method: str,
        idempotency_key: str,
    ) -> AuthorizationResult:
        """Place a hold for ``amount`` on the buyer's payment method."""
        ...

    @abstractmethod
    def capture(self, provider_reference: str, amount: float, currency: str) -> CaptureResult:
        """Collect funds previously authorized."""
        ...

    @abstractmethod
    def refund(
        self,
        provider_reference: str,
        amount: float,
        currency: str,
        reason: str,
        idempotency_key: str,
    ) -> RefundResult:
        """Return ``amount`` to the buyer, or release the hold if not yet captured."""
        ...
