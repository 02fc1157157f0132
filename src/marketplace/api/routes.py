"""FastAPI routes for the marketplace: carts, checkout, orders, payments,
inventory, shipments and returns."""

from fastapi import APIRouter, Depends, Header, Query
from protean.utils.globals import current_domain

from marketplace.api.auth import Actor, current_actor, require_order_access, require_store_staff
from marketplace.api.envelope import success
from marketplace.api.schemas import (
    AddCartItemRequest,
    AdjustStockRequest,
    CheckoutRequest,
    CreateShipmentRequest,
    DispatchShipmentRequest,
    OpenStockLocationRequest,
    RefundRequest,
    ResolveReturnRequest,
    ReturnItemRequest,
    StatusChangeRequest,
    UpdateCartItemRequest,
)
from marketplace.cart.cart import Cart
from marketplace.cart.items import AddToCart, RemoveCartItem, RequoteCart, UpdateCartItem
from marketplace.checkout.checkout import checkout_cart
from marketplace.errors import Forbidden
from marketplace.inventory.inventory import Inventory
from marketplace.inventory.ledger import InventoryLedger
from marketplace.inventory.stocking import AdjustStock, OpenStockLocation
from marketplace.order.order import Order
from marketplace.order.status import TransitionOrderStatus
from marketplace.payment.authorization import AuthorizePayment
from marketplace.payment.capture import CapturePayment
from marketplace.payment.payment import Payment
from marketplace.payment.refund import RefundPayment
from marketplace.reference.sku import Sku
from marketplace.returns.return_request import RequestReturn, ResolveReturn, ReturnDecision, ReturnRequest
from marketplace.settings import LOW_STOCK_THRESHOLD
from marketplace.shipment.shipment import ConfirmDelivery, CreateShipment, DispatchShipment, Shipment


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------
def cart_view(cart) -> dict:
    return {
        "id": str(cart.id),
        "currency": cart.currency,
        "items": [
            {
                "id": str(item.id),
                "sku_id": str(item.sku_id),
                "quantity": item.quantity,
                "price_at": item.price_at,
                "line_total": item.line_total,
            }
            for item in cart.items
        ],
        "subtotal": cart.subtotal,
        "item_count": cart.item_count,
    }


def history_view(order) -> list[dict]:
    return [
        {
            "id": str(entry.id),
            "from_status": entry.from_status,
            "to_status": entry.to_status,
            "actor": entry.actor,
            "notes": entry.notes,
            "tracking_number": entry.tracking_number,
            "restock_type": entry.restock_type,
            "created_at": entry.created_at,
        }
        for entry in sorted(order.history, key=lambda entry: entry.created_at)
    ]


def order_view(order) -> dict:
    pricing = order.pricing
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "status": order.status,
        "buyer_id": str(order.buyer_id),
        "store_id": str(order.store_id),
        "items": [
            {
                "id": str(item.id),
                "sku_id": str(item.sku_id),
                "sku_code": item.sku_code,
                "title": item.title,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
            }
            for item in order.items
        ],
        "subtotal": pricing.subtotal,
        "shipping_cost": pricing.shipping_cost,
        "tax_amount": pricing.tax_amount,
        "total": pricing.total,
        "currency": pricing.currency,
        "shipping_method": order.shipping_method,
        "estimated_delivery": order.estimated_delivery,
        "tracking_number": order.tracking_number,
        "created_at": order.created_at,
    }


def payment_view(payment) -> dict:
    return {
        "id": str(payment.id),
        "order_id": str(payment.order_id),
        "status": payment.status,
        "amount": payment.amount,
        "currency": payment.currency,
        "total_refunded": payment.total_refunded,
        "authorized_at": payment.authorized_at,
        "paid_at": payment.paid_at,
        "refunds": [
            {
                "id": str(refund.id),
                "amount": refund.amount,
                "reason": refund.reason,
                "status": refund.status,
                "processed_at": refund.processed_at,
            }
            for refund in payment.refunds
        ],
    }


def _owned_cart(cart_id, actor: Actor):
    cart = current_domain.repository_for(Cart).get(cart_id)
    if not actor.is_admin and str(cart.owner_id) != actor.user_id:
        raise Forbidden("Cart belongs to another buyer")
    return cart


def _accessible_order(order_id, actor: Actor):
    order = current_domain.repository_for(Order).get(order_id)
    require_order_access(actor, order)
    return order


def _payment_and_order(payment_id):
    payment = current_domain.repository_for(Payment).get(payment_id)
    order = current_domain.repository_for(Order).get(payment.order_id)
    return payment, order


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.post("/items", status_code=201)
async def add_cart_item(body: AddCartItemRequest, actor: Actor = Depends(current_actor)):
    result = current_domain.process(
        AddToCart(
            cart_id=body.cart_id,
            owner_id=actor.user_id,
            sku_id=body.sku_id,
            quantity=body.quantity,
        ),
        asynchronous=False,
    )
    return success(result, status_code=201)


@cart_router.get("/{cart_id}")
async def get_cart(cart_id: str, actor: Actor = Depends(current_actor)):
    return success(cart_view(_owned_cart(cart_id, actor)))


@cart_router.put("/{cart_id}/items/{item_id}")
async def update_cart_item(
    cart_id: str,
    item_id: str,
    body: UpdateCartItemRequest,
    actor: Actor = Depends(current_actor),
):
    _owned_cart(cart_id, actor)
    current_domain.process(
        UpdateCartItem(cart_id=cart_id, item_id=item_id, quantity=body.quantity),
        asynchronous=False,
    )
    return success(cart_view(current_domain.repository_for(Cart).get(cart_id)))


@cart_router.delete("/{cart_id}/items/{item_id}")
async def remove_cart_item(cart_id: str, item_id: str, actor: Actor = Depends(current_actor)):
    _owned_cart(cart_id, actor)
    current_domain.process(RemoveCartItem(cart_id=cart_id, item_id=item_id), asynchronous=False)
    return success(cart_view(current_domain.repository_for(Cart).get(cart_id)))


@cart_router.post("/{cart_id}/requote")
async def requote_cart(cart_id: str, actor: Actor = Depends(current_actor)):
    _owned_cart(cart_id, actor)
    repriced = current_domain.process(RequoteCart(cart_id=cart_id), asynchronous=False)
    cart = current_domain.repository_for(Cart).get(cart_id)
    return success({"repriced_sku_ids": repriced, "cart": cart_view(cart)})


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201)
async def checkout(body: CheckoutRequest, actor: Actor = Depends(current_actor)):
    result = checkout_cart(
        cart_id=body.cart_id,
        buyer_id=actor.user_id,
        shipping_address_id=body.shipping_address_id,
        billing_address_id=body.billing_address_id,
        payment_method=body.payment_method,
        shipping_method=body.shipping_method,
        notes=body.notes,
    )
    return success(result, status_code=201)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{order_id}")
async def get_order(order_id: str, actor: Actor = Depends(current_actor)):
    return success(order_view(_accessible_order(order_id, actor)))


@order_router.get("/{order_id}/history")
async def get_order_history(order_id: str, actor: Actor = Depends(current_actor)):
    return success(history_view(_accessible_order(order_id, actor)))


@order_router.get("/{order_id}/payments")
async def get_order_payments(order_id: str, actor: Actor = Depends(current_actor)):
    order = _accessible_order(order_id, actor)
    payments = current_domain.repository_for(Payment)._dao.query.filter(order_id=str(order.id)).all().items
    return success([payment_view(payment) for payment in payments])


@order_router.post("/{order_id}/status")
async def change_order_status(order_id: str, body: StatusChangeRequest, actor: Actor = Depends(current_actor)):
    _accessible_order(order_id, actor)
    result = current_domain.process(
        TransitionOrderStatus(
            order_id=order_id,
            status=body.status,
            actor=actor.user_id,
            notes=body.notes,
            tracking_number=body.tracking_number,
        ),
        asynchronous=False,
    )
    return success(result)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/{payment_id}/authorize")
async def authorize_payment(payment_id: str, actor: Actor = Depends(current_actor)):
    _, order = _payment_and_order(payment_id)
    require_order_access(actor, order)
    result = current_domain.process(AuthorizePayment(payment_id=payment_id), asynchronous=False)
    return success(result)


@payment_router.post("/{payment_id}/capture")
async def capture_payment(payment_id: str, actor: Actor = Depends(current_actor)):
    _, order = _payment_and_order(payment_id)
    require_store_staff(actor, order.store_id)
    result = current_domain.process(
        CapturePayment(payment_id=payment_id, actor=actor.user_id),
        asynchronous=False,
    )
    return success(result)


@payment_router.post("/{payment_id}/refund")
async def refund_payment(
    payment_id: str,
    body: RefundRequest,
    actor: Actor = Depends(current_actor),
    idempotency_key: str | None = Header(default=None),
):
    _, order = _payment_and_order(payment_id)
    require_store_staff(actor, order.store_id)
    result = current_domain.process(
        RefundPayment(
            payment_id=payment_id,
            amount=body.amount,
            reason=body.reason,
            processed_by=actor.user_id,
            idempotency_key=body.idempotency_key or idempotency_key,
        ),
        asynchronous=False,
    )
    return success(result)


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


def _require_staff(actor: Actor) -> None:
    if not (actor.is_admin or actor.store_ids):
        raise Forbidden("Store staff or admin access required")


@inventory_router.get("/low-stock")
async def low_stock(
    threshold: int = Query(default=LOW_STOCK_THRESHOLD),
    actor: Actor = Depends(current_actor),
):
    _require_staff(actor)
    return success(InventoryLedger().list_below_threshold(threshold))


@inventory_router.get("/skus/{sku_id}")
async def sku_stock(sku_id: str, actor: Actor = Depends(current_actor)):
    _require_staff(actor)
    ledger = InventoryLedger()
    locations = ledger.locations(sku_id)
    return success(
        {
            "sku_id": sku_id,
            "total_stock": sum(inventory.stock for inventory in locations),
            "locations": [
                {"id": str(inventory.id), "location": inventory.location, "stock": inventory.stock}
                for inventory in locations
            ],
        }
    )


@inventory_router.post("", status_code=201)
async def open_stock_location(body: OpenStockLocationRequest, actor: Actor = Depends(current_actor)):
    sku = current_domain.repository_for(Sku).get(body.sku_id)
    require_store_staff(actor, sku.store_id)
    inventory_id = current_domain.process(
        OpenStockLocation(sku_id=body.sku_id, location=body.location, initial_stock=body.initial_stock),
        asynchronous=False,
    )
    return success({"inventory_id": inventory_id}, status_code=201)


@inventory_router.post("/{inventory_id}/adjust")
async def adjust_stock(inventory_id: str, body: AdjustStockRequest, actor: Actor = Depends(current_actor)):
    inventory = current_domain.repository_for(Inventory).get(inventory_id)
    sku = current_domain.repository_for(Sku).get(inventory.sku_id)
    require_store_staff(actor, sku.store_id)
    stock = current_domain.process(
        AdjustStock(inventory_id=inventory_id, quantity_change=body.quantity_change, note=body.note),
        asynchronous=False,
    )
    return success({"inventory_id": inventory_id, "stock": stock})


# ---------------------------------------------------------------------------
# Shipment Router
# ---------------------------------------------------------------------------
shipment_router = APIRouter(prefix="/shipments", tags=["shipments"])


def _shipment_for_staff(shipment_id, actor: Actor):
    shipment = current_domain.repository_for(Shipment).get(shipment_id)
    order = current_domain.repository_for(Order).get(shipment.order_id)
    require_store_staff(actor, order.store_id)
    return shipment


@shipment_router.post("", status_code=201)
async def create_shipment(body: CreateShipmentRequest, actor: Actor = Depends(current_actor)):
    order = current_domain.repository_for(Order).get(body.order_id)
    require_store_staff(actor, order.store_id)
    shipment_id = current_domain.process(
        CreateShipment(
            order_id=body.order_id,
            carrier=body.carrier,
            tracking_code=body.tracking_code,
            actor=actor.user_id,
        ),
        asynchronous=False,
    )
    return success({"shipment_id": shipment_id}, status_code=201)


@shipment_router.post("/{shipment_id}/dispatch")
async def dispatch_shipment(shipment_id: str, body: DispatchShipmentRequest, actor: Actor = Depends(current_actor)):
    _shipment_for_staff(shipment_id, actor)
    current_domain.process(
        DispatchShipment(shipment_id=shipment_id, tracking_code=body.tracking_code, actor=actor.user_id),
        asynchronous=False,
    )
    shipment = current_domain.repository_for(Shipment).get(shipment_id)
    return success({"shipment_id": shipment_id, "status": shipment.status, "tracking_code": shipment.tracking_code})


@shipment_router.post("/{shipment_id}/deliver")
async def confirm_delivery(shipment_id: str, actor: Actor = Depends(current_actor)):
    _shipment_for_staff(shipment_id, actor)
    current_domain.process(ConfirmDelivery(shipment_id=shipment_id, actor=actor.user_id), asynchronous=False)
    shipment = current_domain.repository_for(Shipment).get(shipment_id)
    return success({"shipment_id": shipment_id, "status": shipment.status})


# ---------------------------------------------------------------------------
# Return Router
# ---------------------------------------------------------------------------
return_router = APIRouter(prefix="/returns", tags=["returns"])


@return_router.post("", status_code=201)
async def request_return(body: ReturnItemRequest, actor: Actor = Depends(current_actor)):
    return_id = current_domain.process(
        RequestReturn(
            order_id=body.order_id,
            order_item_id=body.order_item_id,
            buyer_id=actor.user_id,
            quantity=body.quantity,
            reason=body.reason,
            notes=body.notes,
        ),
        asynchronous=False,
    )
    return success({"return_id": return_id, "status": "REQUESTED"}, status_code=201)


@return_router.post("/{return_id}/{decision}")
async def resolve_return(
    return_id: str,
    decision: ReturnDecision,
    body: ResolveReturnRequest | None = None,
    actor: Actor = Depends(current_actor),
):
    request = current_domain.repository_for(ReturnRequest).get(return_id)
    order = current_domain.repository_for(Order).get(request.order_id)
    require_store_staff(actor, order.store_id)
    status = current_domain.process(
        ResolveReturn(
            return_id=return_id,
            decision=decision.value,
            actor=actor.user_id,
            notes=body.notes if body else None,
        ),
        asynchronous=False,
    )
    return success({"return_id": return_id, "status": status})
