"""Order state machine — drives orders through their lifecycle.

Every operation runs inside a single ``UnitOfWork``: the stock ledger's
product writes and the order write commit together or not at all. Events
raised on the way are collected before the save and handed to the
notification dispatcher only after the unit of work has committed.

A ``PersistenceConflict`` (a concurrent writer changed a product or the
order) is retried once with fresh reads; every other error propagates.
"""

import os
from enum import Enum

import structlog
from protean import UnitOfWork
from protean.exceptions import ConfigurationError, ExpectedVersionError, ValidationError
from protean.utils.globals import current_domain

from ordering.errors import InsufficientStock, PersistenceConflict
from ordering.notification import get_dispatcher, notify
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentRejected,
    PaymentVerified,
)
from ordering.order.order import CancellationActor, Order, OrderStatus
from ordering.order.validation import OrderValidator
from ordering.product.events import LowStockDetected, OutOfStockDetected
from ordering.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)

COMMIT_POLICY_ENV = "ORDERING_COMMIT_POLICY"
MAX_ATTEMPTS = 2
ADMIN_CANCELLATION_REASON = "Cancelled by admin"

NOTIFIED_EVENTS = (
    OrderPlaced,
    PaymentVerified,
    PaymentRejected,
    OrderStatusChanged,
    OrderCancelled,
    LowStockDetected,
    OutOfStockDetected,
)


class CommitPolicy(Enum):
    """How payment approval behaves when only some lines can be committed.

    PARTIAL keeps the lines that committed, records them on the order and
    leaves the payment pending. ATOMIC rolls the whole approval back.
    """

    PARTIAL = "partial"
    ATOMIC = "atomic"

    @classmethod
    def from_environment(cls):
        value = os.environ.get(COMMIT_POLICY_ENV, cls.PARTIAL.value).strip().lower()
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"{COMMIT_POLICY_ENV} must be one of: partial, atomic (got {value!r})") from None


class PaymentDecision(Enum):
    APPROVE = "Approve"
    REJECT = "Reject"


class OrderStateMachine:
    def __init__(self, ledger=None, dispatcher=None, validator=None, commit_policy=None):
        self.ledger = ledger or StockLedger()
        self.validator = validator or OrderValidator()
        self._dispatcher = dispatcher
        self.commit_policy = CommitPolicy(commit_policy) if commit_policy else CommitPolicy.from_environment()

    @property
    def dispatcher(self):
        return self._dispatcher or get_dispatcher()

    @property
    def repository(self):
        return current_domain.repository_for(Order)

    # -------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------
    def submit(self, items, payment_method, customer, shipping_address, **details) -> Order:
        """Validate a raw placement request and place the order.

        Catalogue lookups happen inside the same unit of work as the stock
        commits, so a retried placement validates against fresh stock.
        """
        self.validator.validate_request(items, shipping_address, payment_method, customer)
        return self._place(lambda: self.validator.validate(items), payment_method, customer, shipping_address, details)

    def place(self, lines, payment_method, customer, shipping_address, **details) -> Order:
        """Create an order from validated lines.

        Cash on delivery and pre-verified orders commit stock for every
        catalogue line before the order is saved. When a line cannot be
        committed ``InsufficientStock`` is raised. Under the PARTIAL policy
        every product is attempted and, if any line committed, the order is
        saved holding those lines and the error carries its ``order_id``.
        Under ATOMIC, or when nothing committed, nothing is saved.
        Other orders are saved in PENDING_VERIFICATION without touching stock.

        ``details`` is passed through to ``Order.place`` (payment_status,
        delivery_charge, customer_id, guest_id, payment_reference,
        payment_amount).
        """
        return self._place(lambda: lines, payment_method, customer, shipping_address, details)

    def _place(self, resolve_lines, payment_method, customer, shipping_address, details) -> Order:
        def attempt():
            failure = None
            with UnitOfWork():
                lines = resolve_lines()
                order = Order.place(lines, payment_method, customer, shipping_address, **details)
                alerts = []
                if order.commits_stock_at_placement:
                    pending = order.lines_awaiting_commit()
                    atomic = self.commit_policy == CommitPolicy.ATOMIC
                    committed, alerts, failure = self._commit(order, pending, stop_on_failure=atomic)
                    if failure is not None and (atomic or not committed):
                        raise failure
                    order.record_stock_committed(committed)

                events = self._lifecycle_events(order)
                self.repository.save(order)
            return order, events + alerts, failure

        order, events, failure = _retry_on_conflict(attempt, "Order", "new")
        logger.info(
            "Order placed",
            order_id=str(order.id),
            status=order.status,
            payment_method=order.payment_method,
            inventory_committed=order.inventory_committed,
        )
        notify(self.dispatcher, events)

        if failure is not None:
            failure.order_id = str(order.id)
            logger.warning(
                "Order placed with part of its stock committed",
                order_id=str(order.id),
                product_id=failure.product_id,
                requested=failure.requested,
                available=failure.available,
            )
            raise failure
        return order

    # -------------------------------------------------------------------
    # Payment verification
    # -------------------------------------------------------------------
    def verify_payment(self, order_id, decision, reason=None, verified_by=None) -> Order:
        """Approve or reject the payment of a pending order.

        Approval commits every line that does not hold stock yet. When a
        line cannot be committed ``InsufficientStock`` is raised; under the
        PARTIAL policy the lines that did commit stay committed and are
        recorded on the order, under ATOMIC nothing changes.
        """
        decision = _parse_decision(decision)

        def attempt():
            failure = None
            with UnitOfWork():
                order = self.repository.load(order_id)
                order.assert_payment_pending()
                alerts = []

                if decision == PaymentDecision.APPROVE:
                    pending = order.lines_awaiting_commit()
                    atomic = self.commit_policy == CommitPolicy.ATOMIC
                    committed, alerts, failure = self._commit(order, pending, stop_on_failure=atomic)
                    if failure is not None and (atomic or not committed):
                        raise failure
                    order.record_stock_committed(committed)
                    if failure is None:
                        order.approve_payment(verified_by=verified_by)
                else:
                    if self._release(order):
                        order.record_stock_released()
                    order.reject_payment(reason=reason, verified_by=verified_by)

                events = self._lifecycle_events(order)
                self.repository.save(order)
            return order, events + alerts, failure

        order, events, failure = _retry_on_conflict(attempt, "Order", order_id)
        notify(self.dispatcher, events)

        if failure is not None:
            failure.order_id = str(order.id)
            logger.warning(
                "Payment approval left order partially committed",
                order_id=str(order.id),
                product_id=failure.product_id,
                requested=failure.requested,
                available=failure.available,
            )
            raise failure

        logger.info(
            "Payment verified" if decision == PaymentDecision.APPROVE else "Payment rejected",
            order_id=str(order.id),
            status=order.status,
            verified_by=verified_by,
        )
        return order

    # -------------------------------------------------------------------
    # Status updates and cancellation
    # -------------------------------------------------------------------
    def update_status(self, order_id, new_status, reason=None) -> Order:
        """Admin status update: one step along the fulfilment path, or Cancelled."""

        def attempt():
            with UnitOfWork():
                order = self.repository.load(order_id)
                order.assert_can_transition(new_status)

                if new_status == OrderStatus.CANCELLED.value:
                    self._release(order)
                    order.cancel(
                        reason=reason or ADMIN_CANCELLATION_REASON,
                        cancelled_by=CancellationActor.ADMIN.value,
                    )
                else:
                    order.advance_to(new_status)

                events = self._lifecycle_events(order)
                self.repository.save(order)
            return order, events

        order, events = _retry_on_conflict(attempt, "Order", order_id)
        logger.info("Order status updated", order_id=str(order.id), status=order.status)
        notify(self.dispatcher, events)
        return order

    def cancel(self, order_id, cancelled_by, reason) -> Order:
        """Cancel an order on behalf of the customer or an admin.

        Stock is returned only for lines that hold committed stock, so a
        pending online order is cancelled without touching the ledger.
        """
        try:
            actor = CancellationActor(cancelled_by)
        except ValueError:
            raise ValidationError({"cancelled_by": [f"Unknown cancelling party: {cancelled_by}"]}) from None

        def attempt():
            with UnitOfWork():
                order = self.repository.load(order_id)
                order.assert_cancellable(reason)
                self._release(order)
                order.cancel(reason=reason, cancelled_by=actor.value)

                events = self._lifecycle_events(order)
                self.repository.save(order)
            return order, events

        order, events = _retry_on_conflict(attempt, "Order", order_id)
        logger.info("Order cancelled", order_id=str(order.id), cancelled_by=actor.value)
        notify(self.dispatcher, events)
        return order

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def _commit(self, order, lines, stop_on_failure=True):
        """Commit stock for ``lines``, one ledger call per product.

        Returns the lines that committed, the stock alerts raised and the
        first ``InsufficientStock`` encountered (or None). With
        ``stop_on_failure`` off, the remaining products are still attempted.
        """
        committed, alerts, failure = [], [], None
        for product_id, product_lines in _group_by_product(lines).items():
            quantity = sum(line.quantity for line in product_lines)
            try:
                movement = self.ledger.try_commit(product_id, quantity, order_id=str(order.id))
            except InsufficientStock as exc:
                if stop_on_failure:
                    return committed, alerts, exc
                failure = failure or exc
                continue
            committed.extend(product_lines)
            alerts.extend(movement.alerts)
        return committed, alerts, failure

    def _release(self, order):
        """Return all committed stock of the order to the ledger.

        The order's commit markers are left for the caller to clear.
        """
        lines = order.committed_lines()
        if not lines:
            return False
        for product_id, product_lines in _group_by_product(lines).items():
            quantity = sum(line.quantity for line in product_lines)
            self.ledger.release(product_id, quantity, order_id=str(order.id))
        return True

    @staticmethod
    def _lifecycle_events(order):
        return [event for event in order._events if isinstance(event, NOTIFIED_EVENTS)]


def _group_by_product(lines):
    groups = {}
    for line in lines:
        groups.setdefault(str(line.product_id), []).append(line)
    return groups


def _parse_decision(decision):
    try:
        return PaymentDecision(decision)
    except ValueError:
        raise ValidationError({"decision": [f"Decision must be Approve or Reject (got {decision})"]}) from None


def _retry_on_conflict(operation, aggregate, identifier):
    """Run ``operation``, retrying once after a persistence conflict."""
    attempt = 1
    while True:
        try:
            return operation()
        except ExpectedVersionError as exc:
            if attempt >= MAX_ATTEMPTS:
                if isinstance(exc, PersistenceConflict):
                    raise
                raise PersistenceConflict(aggregate, identifier) from exc
            logger.warning(
                "Persistence conflict, retrying",
                aggregate=getattr(exc, "aggregate", aggregate),
                identifier=str(getattr(exc, "identifier", identifier)),
            )
            attempt += 1
