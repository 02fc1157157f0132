"""Shipment aggregate and its commands: one shipment per order.

Creating the shipment starts processing the order; dispatch marks it
SHIPPED with a tracking number; delivery confirmation marks it DELIVERED.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import Conflict, InvalidTransition
from marketplace.order.lifecycle import transition_order
from marketplace.order.order import Order, OrderStatus


class ShipmentStatus(Enum):
    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"


_SHIPPABLE_ORDER_STATUSES = {OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.PROCESSING}


@marketplace.aggregate
class Shipment:
    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_code = String(max_length=100)
    status = String(choices=ShipmentStatus, default=ShipmentStatus.PENDING.value)
    shipped_at = DateTime()
    delivered_at = DateTime()
    created_at = DateTime()

    @classmethod
    def create(cls, order_id, carrier, tracking_code=None):
        return cls(
            order_id=order_id,
            carrier=carrier,
            tracking_code=tracking_code,
            status=ShipmentStatus.PENDING.value,
            created_at=datetime.now(UTC),
        )

    def dispatch(self, tracking_code=None):
        if ShipmentStatus(self.status) != ShipmentStatus.PENDING:
            raise InvalidTransition(self.status, ShipmentStatus.IN_TRANSIT.value, subject="shipment")
        if tracking_code:
            self.tracking_code = tracking_code
        self.status = ShipmentStatus.IN_TRANSIT.value
        self.shipped_at = datetime.now(UTC)

    def deliver(self):
        if ShipmentStatus(self.status) != ShipmentStatus.IN_TRANSIT:
            raise InvalidTransition(self.status, ShipmentStatus.DELIVERED.value, subject="shipment")
        self.status = ShipmentStatus.DELIVERED.value
        self.delivered_at = datetime.now(UTC)


@marketplace.command(part_of="Shipment")
class CreateShipment:
    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_code = String(max_length=100)
    actor = String(max_length=255)


@marketplace.command(part_of="Shipment")
class DispatchShipment:
    shipment_id = Identifier(required=True)
    tracking_code = String(max_length=100)
    actor = String(max_length=255)


@marketplace.command(part_of="Shipment")
class ConfirmDelivery:
    shipment_id = Identifier(required=True)
    actor = String(max_length=255)


@marketplace.command_handler(part_of=Shipment)
class ShipmentHandler:
    @handle(CreateShipment)
    def create_shipment(self, command):
        repo = current_domain.repository_for(Shipment)
        if repo._dao.query.filter(order_id=str(command.order_id)).all().items:
            raise Conflict("Order already has a shipment", order_id=str(command.order_id))

        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(command.order_id)
        status = OrderStatus(order.status)
        if status not in _SHIPPABLE_ORDER_STATUSES:
            raise InvalidTransition(status.value, OrderStatus.PROCESSING.value)

        shipment = Shipment.create(command.order_id, command.carrier, command.tracking_code)
        repo.add(shipment)

        if status != OrderStatus.PROCESSING:
            transition_order(order, OrderStatus.PROCESSING, actor=command.actor, notes="Shipment created")
            order_repo.add(order)
        return str(shipment.id)

    @handle(DispatchShipment)
    def dispatch(self, command):
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        shipment.dispatch(command.tracking_code)
        repo.add(shipment)

        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(shipment.order_id)
        transition_order(
            order,
            OrderStatus.SHIPPED,
            actor=command.actor,
            notes=f"Shipped with {shipment.carrier}",
            tracking_number=shipment.tracking_code,
        )
        order_repo.add(order)

    @handle(ConfirmDelivery)
    def confirm_delivery(self, command):
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        shipment.deliver()
        repo.add(shipment)

        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(shipment.order_id)
        transition_order(order, OrderStatus.DELIVERED, actor=command.actor, notes="Delivered")
        order_repo.add(order)
