"""Typed errors raised by the ordering engine.

Request and state errors extend Protean's ``ValidationError`` so callers can
keep catching them the same way they catch aggregate validation failures.
Each error carries a ``messages`` dict and the attributes needed to render a
user-facing message.
"""

from protean.exceptions import (
    ExpectedVersionError,
    ObjectNotFoundError,
    ValidationError,
)


class ProductUnavailable(ValidationError):
    """The product exists but is not published for sale."""

    def __init__(self, product_id, product_name, publication_state):
        self.product_id = product_id
        self.product_name = product_name
        self.publication_state = publication_state
        super().__init__({"items": [f"{product_name} is not available for purchase ({publication_state})"]})


class InsufficientStock(ValidationError):
    """Less stock is available than the order line requests.

    ``order_id`` is set when the order was saved with part of its stock
    committed before the shortfall was reported.
    """

    def __init__(self, product_id, product_name, requested, available, order_id=None):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        self.order_id = order_id
        super().__init__(
            {"quantity": [f"Insufficient stock for {product_name}: {available} available, {requested} requested"]}
        )


class AlreadyVerified(ValidationError):
    """The order's payment has already been verified or rejected."""

    def __init__(self, order_id, payment_status):
        self.order_id = order_id
        self.payment_status = payment_status
        super().__init__({"payment_status": [f"Payment for order {order_id} is already {payment_status}"]})


class PaymentPending(ValidationError):
    """The order cannot move forward until its payment is verified."""

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__({"payment_status": [f"Payment for order {order_id} has not been verified yet"]})


class NotCancellable(ValidationError):
    def __init__(self, order_id, status):
        self.order_id = order_id
        self.status = status
        super().__init__({"status": [f"Order cannot be cancelled in {status} state"]})


class InvalidStatusTransition(ValidationError):
    def __init__(self, order_id, current, requested):
        self.order_id = order_id
        self.current = current
        self.requested = requested
        super().__init__({"status": [f"Cannot transition from {current} to {requested}"]})


class OrderNotFound(ObjectNotFoundError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__({"_entity": [f"Order {order_id} not found"]})


class ProductNotFound(ObjectNotFoundError):
    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__({"_entity": [f"Product {identifier} not found"]})


class PersistenceConflict(ExpectedVersionError):
    """A concurrent writer changed the aggregate after it was loaded."""

    def __init__(self, aggregate, identifier):
        self.aggregate = aggregate
        self.identifier = identifier
        self.messages = {"_entity": [f"{aggregate} {identifier} was modified concurrently"]}
        super().__init__(f"{aggregate} {identifier} was modified concurrently")
