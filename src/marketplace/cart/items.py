"""Cart line management: commands and handler.

Carts are created lazily: the first ``AddToCart`` without a cart id reuses
the owner's (or session's) existing cart, or opens a new one.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace
from marketplace.errors import Forbidden, InsufficientStock
from marketplace.inventory.ledger import InventoryLedger
from marketplace.reference.sku import Sku


@marketplace.command(part_of="Cart")
class AddToCart:
    cart_id = Identifier()
    owner_id = Identifier()
    session_token = String(max_length=255)
    sku_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="Cart")
class UpdateCartItem:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)


@marketplace.command(part_of="Cart")
class RemoveCartItem:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@marketplace.command(part_of="Cart")
class ClearCart:
    cart_id = Identifier(required=True)


@marketplace.command(part_of="Cart")
class RequoteCart:
    cart_id = Identifier(required=True)


def _find_open_cart(repo, owner_id=None, session_token=None):
    if owner_id:
        carts = repo._dao.query.filter(owner_id=str(owner_id)).all().items
    elif session_token:
        carts = repo._dao.query.filter(session_token=session_token).all().items
    else:
        carts = []
    return carts[0] if carts else None


def _live_sku(sku_id):
    sku = current_domain.repository_for(Sku).get(sku_id)
    if not sku.is_active:
        raise ValidationError({"sku_id": [f"SKU {sku_id} is not available"]})
    return sku


def _ensure_stock(sku_id, wanted):
    available = InventoryLedger().total_stock(sku_id)
    if available < wanted:
        raise InsufficientStock(sku_id, available, wanted)


@marketplace.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(Cart)
        if command.cart_id:
            cart = repo.get(command.cart_id)
            if command.owner_id and cart.owner_id and str(cart.owner_id) != str(command.owner_id):
                raise Forbidden("Cart belongs to another buyer")
        else:
            cart = _find_open_cart(repo, command.owner_id, command.session_token) or Cart.create(
                owner_id=command.owner_id,
                session_token=command.session_token,
            )

        sku = _live_sku(command.sku_id)
        existing = cart.line_for(sku.id)
        _ensure_stock(sku.id, command.quantity + (existing.quantity if existing else 0))

        item = cart.add_item(sku.id, command.quantity, sku.price, sku.currency)
        repo.add(cart)
        return {"cart_id": str(cart.id), "item_id": str(item.id)}

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)

        price = None
        if command.quantity > 0:
            line = cart.line(command.item_id)
            sku = _live_sku(line.sku_id)
            _ensure_stock(sku.id, command.quantity)
            price = sku.price

        cart.update_item_quantity(command.item_id, command.quantity, price=price)
        repo.add(cart)

    @handle(RemoveCartItem)
    def remove_cart_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.remove_item(command.item_id)
        repo.add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.clear()
        repo.add(cart)

    @handle(RequoteCart)
    def requote_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        sku_repo = current_domain.repository_for(Sku)
        prices = {str(item.sku_id): sku_repo.get(item.sku_id).price for item in cart.items}
        changed = cart.requote(prices)
        repo.add(cart)
        return changed
