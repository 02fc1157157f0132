"""Manual order status changes: command and handler."""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.lifecycle import transition_order
from marketplace.order.order import Order


@marketplace.command(part_of="Order")
class TransitionOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    actor = String(max_length=255)
    notes = Text()
    tracking_number = String(max_length=100)


@marketplace.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(TransitionOrderStatus)
    def transition(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous_status = order.status

        entry = transition_order(
            order,
            command.status,
            actor=command.actor,
            notes=command.notes,
            tracking_number=command.tracking_number,
        )
        if entry is None:
            entry = order.latest_history()
        else:
            repo.add(order)

        return {
            "previous_status": previous_status,
            "status": order.status,
            "history_entry_id": str(entry.id) if entry else None,
        }
