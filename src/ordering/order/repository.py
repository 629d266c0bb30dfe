"""Repository for the Order aggregate."""

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError

from ordering.domain import ordering
from ordering.errors import OrderNotFound, PersistenceConflict
from ordering.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@ordering.repository(part_of=Order)
class OrderRepository:
    """Order persistence with typed errors and the order listings.

    ``current_domain.repository_for(Order)`` returns this repository, so the
    standard ``get`` / ``add`` remain available alongside ``load`` / ``save``.
    """

    def load(self, order_id) -> Order:
        try:
            return self.get(str(order_id))
        except ObjectNotFoundError:
            raise OrderNotFound(order_id) from None

    def save(self, order: Order) -> Order:
        """Persist the order, rejecting the write if it was loaded stale."""
        try:
            return self.add(order)
        except ExpectedVersionError:
            logger.warning("Stale order write rejected", order_id=str(order.id))
            raise PersistenceConflict("Order", str(order.id)) from None

    def orders_for_customer(self, customer_id) -> list[Order]:
        """A customer's orders, newest first."""
        return self._dao.query.filter(customer_id=str(customer_id)).order_by("-placed_at").all().items

    def orders_with_status(self, status=None) -> list[Order]:
        """All orders, newest first, optionally narrowed to one status."""
        query = self._dao.query
        if status:
            query = query.filter(status=OrderStatus(status).value)
        return query.order_by("-placed_at").all().items
