"""Tests for Order payment decisions, status steps and cancellation guards."""

import pytest
from ordering.errors import (
    AlreadyVerified,
    InvalidStatusTransition,
    NotCancellable,
    PaymentPending,
)
from ordering.order.events import (
    OrderCancelled,
    OrderStatusChanged,
    PaymentRejected,
    PaymentVerified,
)
from ordering.order.order import (
    CancellationActor,
    Order,
    OrderStatus,
    PaymentStatus,
)
from protean.exceptions import ValidationError


def _make_order(payment_method="Online"):
    order = Order.place(
        lines=[{"product_id": "prod-001", "name": "Linen Shirt", "unit_price": 40.0, "quantity": 1}],
        payment_method=payment_method,
        customer={"name": "Asha Verma", "email": "asha@example.com"},
        shipping_address={"street": "12 Lake Road", "city": "Pune"},
    )
    order._events.clear()
    return order


def _order_at_status(target_status):
    """Create a verified order and advance it to the desired status."""
    order = _make_order()
    order.approve_payment(verified_by="admin")
    order._events.clear()

    path = [
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
    ]
    for status in path:
        if order.status == target_status.value:
            break
        order.advance_to(status.value)
        order._events.clear()
    return order


class TestPaymentDecisions:
    def test_approve(self):
        order = _make_order()
        order.approve_payment(verified_by="admin@shop")
        assert order.status == OrderStatus.ORDER_PLACED.value
        assert order.payment_status == PaymentStatus.VERIFIED.value
        assert order.verified_by == "admin@shop"
        assert order.verified_at is not None
        assert isinstance(order._events[0], PaymentVerified)

    def test_reject(self):
        order = _make_order()
        order.reject_payment(reason="Blurry screenshot")
        assert order.status == OrderStatus.PAYMENT_REJECTED.value
        assert order.payment_status == PaymentStatus.REJECTED.value
        assert order.rejection_reason == "Blurry screenshot"
        assert isinstance(order._events[0], PaymentRejected)
        assert order._events[0].reason == "Blurry screenshot"

    def test_second_decision_rejected(self):
        order = _make_order()
        order.approve_payment()
        with pytest.raises(AlreadyVerified) as exc:
            order.reject_payment(reason="Too late")
        assert exc.value.payment_status == PaymentStatus.VERIFIED.value


class TestStatusSteps:
    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.ORDER_PLACED, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY),
            (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED),
        ],
    )
    def test_one_step_forward(self, current, target):
        order = _order_at_status(current)
        order.advance_to(target.value)
        assert order.status == target.value
        event = order._events[0]
        assert isinstance(event, OrderStatusChanged)
        assert event.previous_status == current.value
        assert event.new_status == target.value

    def test_skipping_a_step_rejected(self):
        order = _order_at_status(OrderStatus.ORDER_PLACED)
        with pytest.raises(InvalidStatusTransition) as exc:
            order.advance_to(OrderStatus.SHIPPED.value)
        assert exc.value.current == OrderStatus.ORDER_PLACED.value
        assert exc.value.requested == OrderStatus.SHIPPED.value

    def test_moving_backwards_rejected(self):
        order = _order_at_status(OrderStatus.SHIPPED)
        with pytest.raises(InvalidStatusTransition):
            order.advance_to(OrderStatus.PROCESSING.value)

    def test_pending_payment_blocks_progress(self):
        order = _make_order()
        with pytest.raises(PaymentPending):
            order.advance_to(OrderStatus.PROCESSING.value)
        assert order.status == OrderStatus.PENDING_VERIFICATION.value

    def test_cash_on_delivery_order_moves_forward(self):
        order = _make_order(payment_method="COD")
        assert order.payment_status == PaymentStatus.PENDING.value

        order.advance_to(OrderStatus.PROCESSING.value)

        assert order.status == OrderStatus.PROCESSING.value
        assert isinstance(order._events[0], OrderStatusChanged)

    def test_nothing_after_delivered(self):
        order = _order_at_status(OrderStatus.DELIVERED)
        with pytest.raises(InvalidStatusTransition):
            order.assert_can_transition(OrderStatus.CANCELLED.value)

    def test_admin_may_cancel_a_shipped_order(self):
        order = _order_at_status(OrderStatus.SHIPPED)
        order.assert_can_transition(OrderStatus.CANCELLED.value)

    def test_pending_order_may_be_cancelled(self):
        order = _make_order()
        order.assert_can_transition(OrderStatus.CANCELLED.value)

    def test_unknown_status_rejected(self):
        order = _order_at_status(OrderStatus.ORDER_PLACED)
        with pytest.raises(ValidationError):
            order.advance_to("Teleported")


class TestCancellation:
    def test_cancel_records_details(self):
        order = _make_order()
        order.cancel(reason="changed mind", cancelled_by=CancellationActor.USER.value)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation.reason == "changed mind"
        assert order.cancellation.cancelled_by == "User"
        assert order.cancelled_at is not None

    def test_cancel_raises_event(self):
        order = _make_order()
        order.cancel(reason="changed mind", cancelled_by="User")
        event = order._events[0]
        assert isinstance(event, OrderCancelled)
        assert event.cancelled_by == "User"
        assert event.reason == "changed mind"
        assert event.inventory_released is False

    def test_cancel_clears_committed_lines(self):
        order = _make_order(payment_method="COD")
        order.record_stock_committed(order.lines_awaiting_commit())
        order.cancel(reason="changed mind", cancelled_by="Admin")
        assert order.inventory_committed is False
        assert order._events[-1].inventory_released is True

    def test_empty_reason_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.assert_cancellable("  ")

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED],
    )
    def test_shipped_orders_not_cancellable(self, status):
        order = _order_at_status(status)
        with pytest.raises(NotCancellable) as exc:
            order.assert_cancellable("changed mind")
        assert exc.value.status == status.value

    def test_cancelled_order_not_cancellable_again(self):
        order = _make_order()
        order.cancel(reason="changed mind", cancelled_by="User")
        with pytest.raises(NotCancellable):
            order.assert_cancellable("again")

    def test_rejected_order_not_cancellable(self):
        order = _make_order()
        order.reject_payment(reason="Fake proof")
        with pytest.raises(NotCancellable):
            order.assert_cancellable("changed mind")

    def test_unknown_actor_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.cancel(reason="changed mind", cancelled_by="Robot")

    def test_cancellation_message(self):
        order = _order_at_status(OrderStatus.DELIVERED)
        with pytest.raises(NotCancellable) as exc:
            order.assert_cancellable("changed mind")
        assert exc.value.messages == {"status": ["Order cannot be cancelled in Delivered state"]}
