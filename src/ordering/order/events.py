"""Domain events for the Order aggregate.

These are the lifecycle facts handed to the notification dispatcher once the
unit of work that produced them has committed.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """An order was placed.

    ``confirmed`` is True when stock was committed at placement (cash on
    delivery or an already verified payment) and False when the order waits
    for payment verification.
    """

    __version__ = 1

    order_id = Identifier(required=True)
    customer_name = String(required=True)
    customer_email = String(required=True)
    payment_method = String(required=True)
    total_amount = Float(required=True)
    confirmed = Boolean(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentVerified:
    __version__ = 1

    order_id = Identifier(required=True)
    verified_by = String()
    verified_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentRejected:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    rejected_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """An admin moved the order along the fulfilment path."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_by = String(required=True)
    inventory_released = Boolean(default=False)
    cancelled_at = DateTime(required=True)
