"""Stock ledger — the only writer of product stock counts.

Every movement is a compare-and-swap on the Product aggregate: the product is
loaded, the availability check and the mutation happen on that snapshot, and
the save is accepted only if the persisted version is still the one that was
checked. A concurrent writer makes the save fail with ``PersistenceConflict``
rather than letting two commits spend the same units.

Both ``try_commit`` and ``release`` adjust stock every time they are called.
Callers track which order lines hold committed stock and must not call them
twice for the same line.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.errors import PersistenceConflict, ProductNotFound
from ordering.product.events import LowStockDetected, OutOfStockDetected
from ordering.product.product import Product

logger = structlog.get_logger(__name__)

_ALERT_EVENTS = (LowStockDetected, OutOfStockDetected)


@dataclass(frozen=True)
class StockMovement:
    """Outcome of a ledger operation."""

    product_id: str
    quantity: int
    available_quantity: int
    total_sold: int
    alerts: tuple = field(default_factory=tuple)


class StockLedger:
    def try_commit(self, product_id, quantity, order_id=None) -> StockMovement:
        """Deduct ``quantity`` units if at least that many are available.

        Raises ``InsufficientStock`` when the product cannot cover the
        quantity, and ``PersistenceConflict`` when another writer changed the
        product between the check and the write.
        """
        product = self._load(product_id)
        product.commit_stock(quantity, order_id=order_id)
        alerts = tuple(e for e in product._events if isinstance(e, _ALERT_EVENTS))
        self._save(product)

        logger.info(
            "Stock committed",
            product_id=str(product.id),
            order_id=order_id,
            quantity=quantity,
            available_quantity=product.available_quantity,
        )
        return self._movement(product, quantity, alerts)

    def release(self, product_id, quantity, order_id=None) -> StockMovement:
        """Return ``quantity`` units to availability."""
        product = self._load(product_id)
        product.release_stock(quantity, order_id=order_id)
        self._save(product)

        logger.info(
            "Stock released",
            product_id=str(product.id),
            order_id=order_id,
            quantity=quantity,
            available_quantity=product.available_quantity,
        )
        return self._movement(product, quantity)

    def restock(self, product_id, quantity) -> StockMovement:
        """Receive new units into stock (admin restocking)."""
        product = self._load(product_id)
        product.receive_stock(quantity)
        self._save(product)

        logger.info(
            "Stock received",
            product_id=str(product.id),
            quantity=quantity,
            available_quantity=product.available_quantity,
        )
        return self._movement(product, quantity)

    def _load(self, product_id) -> Product:
        try:
            return current_domain.repository_for(Product).get(str(product_id))
        except ObjectNotFoundError:
            raise ProductNotFound(product_id) from None

    def _save(self, product):
        try:
            current_domain.repository_for(Product).add(product)
        except ExpectedVersionError:
            logger.warning("Stale product write rejected", product_id=str(product.id))
            raise PersistenceConflict("Product", str(product.id)) from None

    @staticmethod
    def _movement(product, quantity, alerts=()):
        return StockMovement(
            product_id=str(product.id),
            quantity=quantity,
            available_quantity=product.available_quantity,
            total_sold=product.total_sold,
            alerts=alerts,
        )
