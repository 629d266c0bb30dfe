"""Order placement — command and handler."""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text

from ordering.domain import ordering
from ordering.order.lifecycle import OrderStateMachine
from ordering.order.order import Order, PaymentMethod, PaymentStatus


@ordering.command(part_of="Order")
class PlaceOrder:
    items = Text(required=True)  # JSON: list of requested lines
    shipping_address = Text(required=True)  # JSON: address dict
    customer_name = String(required=True, max_length=255)
    customer_email = String(required=True, max_length=255)
    customer_phone = String(max_length=50)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_reference = String(max_length=500)  # Transaction id or proof-of-payment URL
    payment_amount = Float(min_value=0.0)
    delivery_charge = Float(default=0.0, min_value=0.0)
    customer_id = Identifier()
    guest_id = String(max_length=255)


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items = json.loads(command.items) if isinstance(command.items, str) else command.items
        shipping_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )
        customer = {
            "name": command.customer_name,
            "email": command.customer_email,
            "phone": command.customer_phone or "",
        }

        order = OrderStateMachine().submit(
            items,
            payment_method=command.payment_method,
            customer=customer,
            shipping_address=shipping_address,
            payment_status=command.payment_status or PaymentStatus.PENDING.value,
            delivery_charge=command.delivery_charge or 0.0,
            customer_id=command.customer_id,
            guest_id=command.guest_id,
            payment_reference=command.payment_reference,
            payment_amount=command.payment_amount,
        )
        return str(order.id)
