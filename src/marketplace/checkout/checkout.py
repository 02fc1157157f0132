"""Checkout: turn a cart into an order, a pending payment and stock movements.

Everything happens inside the command handler's unit of work:

1. Re-read live stock for every line; any shortfall fails the whole checkout.
2. Re-validate each line's price snapshot against the live SKU price.
3. Price the order (subtotal, shipping, tax, total).
4. Generate an order number.
5. Create the order, its items, its first history entry and a PENDING payment.
6. Decrement stock per line, recording SALE transactions.
7. Clear the cart.

A failure at any step, including a decrement that loses a race after the
pre-check, rolls every write back. ``checkout_cart`` retries the whole unit
once when the write itself conflicts.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.checkout.numbering import generate_order_number
from marketplace.checkout.pricing import quote_order
from marketplace.domain import marketplace
from marketplace.errors import Conflict, Forbidden, InsufficientStock, OrderNumberTaken, PriceChanged
from marketplace.inventory.ledger import InventoryLedger
from marketplace.order.order import Order
from marketplace.payment.gateway import get_gateway
from marketplace.payment.payment import Payment
from marketplace.reference.address import Address
from marketplace.reference.sku import Sku
from marketplace.settings import CHECKOUT_ATTEMPTS
from marketplace.utils.money import money, quantize

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class CheckoutCart:
    cart_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier(required=True)
    payment_method = String(required=True, max_length=50)
    shipping_method = String(max_length=20)
    notes = Text()


@dataclass(frozen=True)
class CheckoutLine:
    sku: Sku
    quantity: int
    price_at: Decimal

    @property
    def unit_price(self) -> Decimal:
        return quantize(self.sku.price)

    def as_order_item(self) -> dict:
        return {
            "sku_id": str(self.sku.id),
            "product_id": str(self.sku.product_id),
            "sku_code": self.sku.code,
            "title": self.sku.title,
            "attributes": self.sku.attributes,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
            "line_total": money(self.unit_price * self.quantity),
        }


def load_lines(cart) -> list[CheckoutLine]:
    sku_repo = current_domain.repository_for(Sku)
    lines = []
    for item in cart.items:
        sku = sku_repo.get(item.sku_id)
        if not sku.is_active:
            raise ValidationError({"items": [f"SKU {sku.code} is no longer available"]})
        if sku.currency != cart.currency:
            raise ValidationError({"items": [f"SKU {sku.code} is priced in {sku.currency}, cart in {cart.currency}"]})
        lines.append(CheckoutLine(sku=sku, quantity=item.quantity, price_at=quantize(item.price_at)))

    stores = {str(line.sku.store_id) for line in lines}
    if len(stores) > 1:
        raise ValidationError({"items": ["All items in an order must come from the same store"]})
    return lines


def ensure_available(ledger, lines) -> None:
    for line in lines:
        available = ledger.total_stock(line.sku.id)
        if available < line.quantity:
            raise InsufficientStock(line.sku.id, available, line.quantity)


def ensure_prices_current(lines) -> None:
    for line in lines:
        if line.price_at != line.unit_price:
            raise PriceChanged(line.sku.id, float(line.price_at), float(line.unit_price))


def claim_order_number(order_repo) -> str:
    order_number = generate_order_number()
    if order_repo._dao.query.filter(order_number=order_number).all().items:
        raise OrderNumberTaken(f"Order number {order_number} is already in use", order_number=order_number)
    return order_number


def _buyer_address(address_id, buyer_id, label) -> dict:
    address = current_domain.repository_for(Address).get(address_id)
    if str(address.owner_id) != str(buyer_id):
        raise Forbidden(f"The {label} address belongs to another user")
    return address.snapshot()


def place_order(command) -> dict:
    cart_repo = current_domain.repository_for(Cart)
    order_repo = current_domain.repository_for(Order)

    cart = cart_repo.get(command.cart_id)
    if str(cart.owner_id) != str(command.buyer_id):
        raise Forbidden("Cart belongs to another buyer")
    if not cart.items:
        raise ValidationError({"cart": ["Cart is empty"]})

    shipping_address = _buyer_address(command.shipping_address_id, command.buyer_id, "shipping")
    billing_address = _buyer_address(command.billing_address_id, command.buyer_id, "billing")

    lines = load_lines(cart)
    ledger = InventoryLedger()
    ensure_available(ledger, lines)
    ensure_prices_current(lines)

    quote = quote_order(
        ((line.unit_price, line.quantity) for line in lines),
        shipping_method=command.shipping_method,
        currency=cart.currency,
    )

    order = Order.place(
        order_number=claim_order_number(order_repo),
        buyer_id=command.buyer_id,
        store_id=str(lines[0].sku.store_id),
        items=[line.as_order_item() for line in lines],
        pricing=quote.as_pricing(),
        shipping_address=shipping_address,
        billing_address=billing_address,
        shipping_method=quote.shipping_method,
        estimated_delivery=quote.estimated_delivery,
        payment_method=command.payment_method,
        notes=command.notes,
    )
    order_repo.add(order)

    payment = Payment.create(
        order_id=str(order.id),
        amount=float(quote.total),
        currency=quote.currency,
        payment_method=command.payment_method,
        provider=get_gateway().name,
    )
    current_domain.repository_for(Payment).add(payment)

    for line in lines:
        ledger.decrement(
            line.sku.id,
            line.quantity,
            order_id=str(order.id),
            note=f"Sold on order {order.order_number}",
        )

    cart.clear()
    cart_repo.add(cart)

    logger.info(
        "Order placed",
        order_id=str(order.id),
        order_number=order.order_number,
        buyer_id=str(command.buyer_id),
        total=float(quote.total),
        lines=len(lines),
    )
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": order.status,
        "total": float(quote.total),
        "currency": quote.currency,
        "payment_id": str(payment.id),
        "estimated_delivery": quote.estimated_delivery,
    }


@marketplace.command_handler(part_of=Order)
class CheckoutHandler:
    @handle(CheckoutCart)
    def checkout(self, command):
        return place_order(command)


def checkout_cart(attempts: int = CHECKOUT_ATTEMPTS, **fields) -> dict:
    """Run a checkout, retrying the whole unit when its write conflicts."""
    for attempt in range(1, attempts + 1):
        try:
            return current_domain.process(CheckoutCart(**fields), asynchronous=False)
        except OrderNumberTaken:
            if attempt == attempts:
                raise
            logger.warning("Order number collision, retrying checkout", attempt=attempt)
        except ExpectedVersionError as exc:
            if attempt == attempts:
                raise Conflict("Checkout raced with another update; please retry") from exc
            logger.warning("Concurrent update during checkout, retrying", attempt=attempt)
