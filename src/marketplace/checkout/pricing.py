"""Checkout pricing: subtotal, shipping, tax and total for a set of lines.

Every component is rounded half-up to cents before it is summed, so the
total always equals subtotal + shipping + tax exactly.
"""

from dataclasses import dataclass
from decimal import Decimal

from protean.exceptions import ValidationError

from marketplace.settings import CURRENCY, DEFAULT_SHIPPING_METHOD, SHIPPING_METHODS, TAX_RATE
from marketplace.utils.money import quantize


@dataclass(frozen=True)
class Quote:
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total: Decimal
    currency: str
    shipping_method: str
    estimated_delivery: str

    def as_pricing(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "shipping_cost": float(self.shipping_cost),
            "tax_amount": float(self.tax_amount),
            "total": float(self.total),
            "currency": self.currency,
        }


def shipping_option(method: str | None) -> tuple[str, dict]:
    method = method or DEFAULT_SHIPPING_METHOD
    if method not in SHIPPING_METHODS:
        raise ValidationError(
            {"shipping_method": [f"Unknown shipping method '{method}'; choose from {', '.join(SHIPPING_METHODS)}"]}
        )
    return method, SHIPPING_METHODS[method]


def quote_order(lines, shipping_method: str | None = None, currency: str = CURRENCY) -> Quote:
    """Price ``lines``, an iterable of ``(unit_price, quantity)`` pairs."""
    subtotal = quantize(sum((quantize(price) * quantity for price, quantity in lines), Decimal(0)))
    method, option = shipping_option(shipping_method)
    shipping_cost = quantize(option["cost"])
    tax_amount = quantize(subtotal * TAX_RATE)

    return Quote(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax_amount=tax_amount,
        total=subtotal + shipping_cost + tax_amount,
        currency=currency,
        shipping_method=method,
        estimated_delivery=option["estimated_delivery"],
    )
