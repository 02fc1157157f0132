"""Cart aggregate: what a buyer intends to purchase.

Each line freezes the SKU price seen when it was added or last updated.
Subtotal and item count are derived from the lines and never stored.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from marketplace.cart.events import (
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartItemUpdated,
    CartRequoted,
)
from marketplace.domain import marketplace
from marketplace.errors import NotFound
from marketplace.settings import CURRENCY
from marketplace.utils.money import money, quantize


@marketplace.entity(part_of="Cart")
class CartItem:
    sku_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price_at = Float(required=True, min_value=0.0)
    added_at = DateTime()
    updated_at = DateTime()

    @property
    def line_total(self) -> float:
        return money(quantize(self.price_at) * self.quantity)


@marketplace.aggregate
class Cart:
    owner_id = Identifier()  # Empty for anonymous carts
    session_token = String(max_length=255)
    currency = String(max_length=3, default=CURRENCY)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def one_line_per_sku(self):
        sku_ids = [str(item.sku_id) for item in self.items]
        if len(sku_ids) != len(set(sku_ids)):
            raise ValidationError({"items": ["A SKU can only appear once in a cart"]})

    @classmethod
    def create(cls, owner_id=None, session_token=None, currency=CURRENCY):
        if not owner_id and not session_token:
            raise ValidationError({"owner_id": ["A cart needs an owner or a session token"]})

        now = datetime.now(UTC)
        return cls(
            owner_id=owner_id,
            session_token=session_token,
            currency=currency,
            created_at=now,
            updated_at=now,
        )

    @property
    def subtotal(self) -> float:
        return money(sum((quantize(item.price_at) * item.quantity for item in self.items), quantize(0)))

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def line_for(self, sku_id):
        return next((item for item in self.items if str(item.sku_id) == str(sku_id)), None)

    def line(self, item_id):
        item = next((item for item in self.items if str(item.id) == str(item_id)), None)
        if item is None:
            raise NotFound(f"Item {item_id} is not in cart {self.id}", item_id=str(item_id))
        return item

    def add_item(self, sku_id, quantity, price, currency=CURRENCY):
        """Add a SKU or top up its line; the price snapshot is refreshed either way."""
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if currency != self.currency:
            raise ValidationError({"currency": [f"Cart is priced in {self.currency}, SKU in {currency}"]})

        now = datetime.now(UTC)
        existing = self.line_for(sku_id)
        if existing:
            existing.quantity += quantity
            existing.price_at = price
            existing.updated_at = now
            item = existing
        else:
            item = CartItem(
                sku_id=sku_id,
                quantity=quantity,
                price_at=price,
                added_at=now,
                updated_at=now,
            )
            self.add_items(item)

        self.updated_at = now
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                sku_id=str(sku_id),
                quantity=quantity,
                price_at=price,
            )
        )
        return item

    def update_item_quantity(self, item_id, quantity, price=None):
        """Set a line's quantity; zero removes the line."""
        if quantity is None or quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})

        item = self.line(item_id)
        if quantity == 0:
            self.remove_item(item_id)
            return None

        previous_quantity = item.quantity
        now = datetime.now(UTC)
        item.quantity = quantity
        if price is not None:
            item.price_at = price
        item.updated_at = now
        self.updated_at = now

        self.raise_(
            CartItemUpdated(
                cart_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )
        return item

    def remove_item(self, item_id):
        item = self.line(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                item_id=str(item.id),
                sku_id=str(item.sku_id),
            )
        )

    def clear(self):
        lines = list(self.items)
        for item in lines:
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartCleared(cart_id=str(self.id), items_removed=len(lines)))

    def requote(self, prices: dict) -> list[str]:
        """Refresh price snapshots from ``prices`` (SKU id to live price).

        Returns the SKU ids whose snapshot changed.
        """
        changed = []
        now = datetime.now(UTC)
        for item in self.items:
            live = prices.get(str(item.sku_id))
            if live is None or quantize(live) == quantize(item.price_at):
                continue
            item.price_at = live
            item.updated_at = now
            changed.append(str(item.sku_id))

        if changed:
            self.updated_at = now
            self.raise_(CartRequoted(cart_id=str(self.id), lines_repriced=len(changed)))
        return changed
