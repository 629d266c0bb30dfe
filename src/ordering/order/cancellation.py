"""Order cancellation — command and handler."""

from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.lifecycle import OrderStateMachine
from ordering.order.order import CancellationActor, Order


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(choices=CancellationActor, default=CancellationActor.USER.value)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = OrderStateMachine().cancel(
            command.order_id,
            cancelled_by=command.cancelled_by,
            reason=command.reason,
        )
        return order.status
