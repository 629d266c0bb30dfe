"""Payment verification — command and handler."""

from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.lifecycle import OrderStateMachine, PaymentDecision
from ordering.order.order import Order


@ordering.command(part_of="Order")
class VerifyPayment:
    order_id = Identifier(required=True)
    decision = String(required=True, choices=PaymentDecision)
    reason = String(max_length=500)
    verified_by = String(max_length=255)


@ordering.command_handler(part_of=Order)
class VerifyPaymentHandler:
    @handle(VerifyPayment)
    def verify_payment(self, command):
        order = OrderStateMachine().verify_payment(
            command.order_id,
            command.decision,
            reason=command.reason,
            verified_by=command.verified_by,
        )
        return order.status
