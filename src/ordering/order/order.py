"""Order aggregate — the core of the ordering domain.

The Order keeps a snapshot of every line (name and unit price at placement
time) so historical orders stay readable when the catalogue changes. It also
records exactly which lines hold committed stock: ``inventory_committed`` is
true iff at least one line has ``stock_committed`` set, and the two are only
ever changed together.

State Machine:
    PENDING_VERIFICATION → ORDER_PLACED (payment approved)
    PENDING_VERIFICATION → PAYMENT_REJECTED (payment rejected)
    ORDER_PLACED → PROCESSING → SHIPPED → OUT_FOR_DELIVERY → DELIVERED
    any non-terminal state → CANCELLED
Terminal: DELIVERED, CANCELLED, PAYMENT_REJECTED
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import (
    AlreadyVerified,
    InvalidStatusTransition,
    NotCancellable,
    PaymentPending,
)
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentRejected,
    PaymentVerified,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_VERIFICATION = "Pending_Verification"
    ORDER_PLACED = "Order_Placed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    OUT_FOR_DELIVERY = "Out_For_Delivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    PAYMENT_REJECTED = "Payment_Rejected"


class PaymentMethod(Enum):
    COD = "COD"
    ONLINE = "Online"


class PaymentStatus(Enum):
    PENDING = "Pending"
    VERIFIED = "Verified"
    REJECTED = "Rejected"


class OrderType(Enum):
    USER = "User"
    GUEST = "Guest"


class CancellationActor(Enum):
    USER = "User"
    ADMIN = "Admin"


TERMINAL_STATUSES = {
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.PAYMENT_REJECTED,
}

# Admin-driven fulfilment path, one step at a time
_NEXT_STATUS = {
    OrderStatus.ORDER_PLACED: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.OUT_FOR_DELIVERY: OrderStatus.DELIVERED,
}

# Once goods have left the warehouse a customer can no longer cancel
_NOT_CANCELLABLE = {
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
} | TERMINAL_STATUSES


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class CustomerDetails:
    name = String(required=True, max_length=255)
    email = String(required=True, max_length=255)
    phone = String(max_length=50, default="")


@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Where the order is delivered, captured at placement time."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100)


@ordering.value_object(part_of="Order")
class Cancellation:
    reason = String(required=True, max_length=500)
    cancelled_by = String(required=True, choices=CancellationActor)
    cancelled_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderLine:
    """A line of the order: a product snapshot and a quantity.

    ``product_id`` is empty for promotional lines that were accepted without a
    catalogue match. ``stock_committed`` marks lines whose quantity has been
    deducted from the product's stock.
    """

    product_id = Identifier()
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    promotional = Boolean(default=False)
    stock_committed = Boolean(default=False)

    @property
    def holds_stock(self):
        """Whether this line draws on a catalogue product's stock."""
        return bool(self.product_id) and not self.promotional


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    customer_id = Identifier()
    guest_id = String(max_length=255)
    order_type = String(choices=OrderType, default=OrderType.USER.value)
    customer = ValueObject(CustomerDetails, required=True)
    shipping_address = ValueObject(ShippingAddress, required=True)
    items = HasMany(OrderLine)
    total_amount = Float(required=True, min_value=0.0)
    delivery_charge = Float(default=0.0, min_value=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING_VERIFICATION.value)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_reference = String(max_length=500)
    payment_amount = Float(default=0.0, min_value=0.0)
    inventory_committed = Boolean(default=False)
    verified_by = String(max_length=255)
    rejection_reason = String(max_length=500)
    cancellation = ValueObject(Cancellation)
    placed_at = DateTime()
    verified_at = DateTime()
    cancelled_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def order_must_have_items(self):
        if not self.items:
            raise ValidationError({"items": ["An order must contain at least one item"]})

    @invariant.post
    def inventory_flag_matches_committed_lines(self):
        committed = any(line.stock_committed for line in self.items)
        if bool(self.inventory_committed) != committed:
            raise ValidationError({"inventory_committed": ["Inventory flag does not match the committed order lines"]})

    @invariant.post
    def cancellation_recorded_only_when_cancelled(self):
        cancelled = self.status == OrderStatus.CANCELLED.value
        if cancelled != (self.cancellation is not None):
            raise ValidationError({"cancellation": ["Cancellation details are recorded only for cancelled orders"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        lines,
        payment_method,
        customer,
        shipping_address,
        payment_status=PaymentStatus.PENDING.value,
        delivery_charge=0.0,
        customer_id=None,
        guest_id=None,
        payment_reference=None,
        payment_amount=None,
    ):
        """Create an order from validated lines.

        Args:
            lines: Normalized lines (``NormalizedLine`` or dicts with
                   product_id, name, unit_price, quantity, promotional).
            payment_method: "COD" or "Online".
            customer: Dict with name, email and optional phone.
            shipping_address: Dict with street, city, state, postal_code, country.
            payment_status: Payment status at placement; "Verified" when the
                            payment was confirmed upstream.

        Cash on delivery and pre-verified orders start in ORDER_PLACED;
        everything else waits in PENDING_VERIFICATION. Stock is not touched
        here; the state machine commits it and records the result with
        ``record_stock_committed``.
        """
        method = _parse(PaymentMethod, payment_method, "payment_method")
        payment = _parse(PaymentStatus, payment_status, "payment_status")
        if payment == PaymentStatus.REJECTED:
            raise ValidationError({"payment_status": ["An order cannot be placed with a rejected payment"]})

        confirmed = method == PaymentMethod.COD or payment == PaymentStatus.VERIFIED
        now = datetime.now(UTC)

        order_lines = [
            OrderLine(
                product_id=_line_value(line, "product_id"),
                name=_line_value(line, "name"),
                unit_price=_line_value(line, "unit_price"),
                quantity=_line_value(line, "quantity"),
                promotional=bool(_line_value(line, "promotional")),
            )
            for line in lines
        ]
        charge = delivery_charge or 0.0
        subtotal = sum(line.unit_price * line.quantity for line in order_lines)

        order = cls(
            customer_id=customer_id,
            guest_id=guest_id,
            order_type=OrderType.USER.value if customer_id or not guest_id else OrderType.GUEST.value,
            customer=CustomerDetails(**customer),
            shipping_address=ShippingAddress(**shipping_address),
            items=order_lines,
            total_amount=round(subtotal + charge, 2),
            delivery_charge=charge,
            status=(OrderStatus.ORDER_PLACED if confirmed else OrderStatus.PENDING_VERIFICATION).value,
            payment_method=method.value,
            payment_status=payment.value,
            payment_reference=payment_reference,
            payment_amount=payment_amount or 0.0,
            inventory_committed=False,
            placed_at=now,
            verified_at=now if payment == PaymentStatus.VERIFIED else None,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_name=order.customer.name,
                customer_email=order.customer.email,
                payment_method=method.value,
                total_amount=order.total_amount,
                confirmed=confirmed,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Inventory bookkeeping
    # -------------------------------------------------------------------
    @property
    def commits_stock_at_placement(self):
        return (
            self.payment_method == PaymentMethod.COD.value or self.payment_status == PaymentStatus.VERIFIED.value
        )

    def lines_awaiting_commit(self):
        """Lines that draw on stock but have not been committed yet."""
        return [line for line in self.items if line.holds_stock and not line.stock_committed]

    def committed_lines(self):
        return [line for line in self.items if line.stock_committed]

    def record_stock_committed(self, lines):
        """Mark lines whose stock the ledger has just committed."""
        if not lines:
            return
        line_ids = {str(line.id) for line in lines}
        with atomic_change(self):
            for line in self.items:
                if str(line.id) in line_ids:
                    line.stock_committed = True
            self.inventory_committed = True
            self.updated_at = datetime.now(UTC)

    def record_stock_released(self):
        """Clear the commit markers after the ledger returned every committed line."""
        with atomic_change(self):
            for line in self.items:
                line.stock_committed = False
            self.inventory_committed = False
            self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Payment verification
    # -------------------------------------------------------------------
    def assert_payment_pending(self):
        if PaymentStatus(self.payment_status) != PaymentStatus.PENDING:
            raise AlreadyVerified(order_id=str(self.id), payment_status=self.payment_status)

    def approve_payment(self, verified_by=None):
        """Accept the payment proof. Stock must already be committed by the caller."""
        self.assert_payment_pending()

        now = datetime.now(UTC)
        self.status = OrderStatus.ORDER_PLACED.value
        self.payment_status = PaymentStatus.VERIFIED.value
        self.verified_by = verified_by
        self.verified_at = now
        self.updated_at = now

        self.raise_(
            PaymentVerified(
                order_id=str(self.id),
                verified_by=verified_by,
                verified_at=now,
            )
        )

    def reject_payment(self, reason=None, verified_by=None):
        self.assert_payment_pending()

        now = datetime.now(UTC)
        self.status = OrderStatus.PAYMENT_REJECTED.value
        self.payment_status = PaymentStatus.REJECTED.value
        self.rejection_reason = reason
        self.verified_by = verified_by
        self.verified_at = now
        self.updated_at = now

        self.raise_(
            PaymentRejected(
                order_id=str(self.id),
                reason=reason,
                rejected_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def assert_can_transition(self, target_status):
        """Validate an admin status update before any stock is touched."""
        target = _parse_status(target_status)
        current = OrderStatus(self.status)

        # Cash on delivery stays Pending until the courier collects; only
        # orders awaiting payment proof are held back
        if target != OrderStatus.CANCELLED and current == OrderStatus.PENDING_VERIFICATION:
            raise PaymentPending(order_id=str(self.id))

        if target == OrderStatus.CANCELLED and current not in TERMINAL_STATUSES:
            return

        if _NEXT_STATUS.get(current) != target:
            raise InvalidStatusTransition(
                order_id=str(self.id),
                current=current.value,
                requested=target.value,
            )

    def advance_to(self, target_status):
        """Move the order one step along the fulfilment path."""
        target = _parse_status(target_status)
        if target == OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Use cancel() to cancel an order"]})
        self.assert_can_transition(target.value)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def assert_cancellable(self, reason):
        """Validate a cancellation request from a customer or an admin."""
        if not reason or not str(reason).strip():
            raise ValidationError({"reason": ["A cancellation reason is required"]})

        current = OrderStatus(self.status)
        if current in _NOT_CANCELLABLE:
            raise NotCancellable(order_id=str(self.id), status=current.value)

    def cancel(self, reason, cancelled_by):
        """Cancel the order.

        Any committed stock must have been returned by the caller before
        this is invoked; the commit markers are cleared here.
        """
        actor = _parse(CancellationActor, cancelled_by, "cancelled_by")
        if OrderStatus(self.status) in TERMINAL_STATUSES:
            raise NotCancellable(order_id=str(self.id), status=self.status)

        released = bool(self.inventory_committed)
        now = datetime.now(UTC)
        with atomic_change(self):
            for line in self.items:
                line.stock_committed = False
            self.inventory_committed = False
            self.status = OrderStatus.CANCELLED.value
            self.cancellation = Cancellation(
                reason=reason,
                cancelled_by=actor.value,
                cancelled_at=now,
            )
            self.cancelled_at = now
            self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=actor.value,
                inventory_released=released,
                cancelled_at=now,
            )
        )


def _line_value(line, name):
    if isinstance(line, dict):
        return line.get(name)
    return getattr(line, name, None)


def _parse(enum_cls, value, field):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError({field: [f"Unsupported value: {value}"]}) from None


def _parse_status(value):
    return _parse(OrderStatus, value, "status")
