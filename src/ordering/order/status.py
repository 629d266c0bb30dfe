"""Admin status updates — command and handler."""

from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.lifecycle import OrderStateMachine
from ordering.order.order import Order, OrderStatus


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    reason = String(max_length=500)  # Used when the new status is Cancelled


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        order = OrderStateMachine().update_status(
            command.order_id,
            command.status,
            reason=command.reason,
        )
        return order.status
