"""Product aggregate — the catalogue entry that owns a single stock counter.

Stock fields (``available_quantity``, ``total_sold``) change only through the
stock ledger, which calls ``commit_stock`` / ``release_stock`` /
``receive_stock`` and persists the result with a version check. Catalogue
fields change through the catalogue management commands.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String

from ordering.domain import ordering
from ordering.errors import InsufficientStock
from ordering.product.events import (
    LowStockDetected,
    OutOfStockDetected,
    ProductAdded,
    PublicationStateChanged,
    StockCommitted,
    StockReceived,
    StockReleased,
)

LOW_STOCK_THRESHOLD = 10


class PublicationState(Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"
    ARCHIVED = "Archived"
    SCHEDULED = "Scheduled"


@ordering.aggregate
class Product:
    """Product aggregate root."""

    name: String(required=True, max_length=255)
    price: Float(required=True, min_value=0.0)
    category: String(max_length=100)
    available_quantity: Integer(default=0, min_value=0)
    total_sold: Integer(default=0, min_value=0)
    publication_state: String(choices=PublicationState, default=PublicationState.DRAFT.value)
    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def add(cls, name, price, quantity=0, category=None, publication_state=None):
        now = datetime.now(UTC)
        state = publication_state or PublicationState.DRAFT.value

        product = cls(
            name=name,
            price=price,
            category=category,
            available_quantity=quantity,
            total_sold=0,
            publication_state=state,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductAdded(
                product_id=product.id,
                name=name,
                price=price,
                available_quantity=quantity,
                publication_state=state,
                added_at=now,
            )
        )
        return product

    @property
    def is_published(self):
        return self.publication_state == PublicationState.PUBLISHED.value

    def change_publication_state(self, new_state):
        target = PublicationState(new_state)
        previous = PublicationState(self.publication_state)
        if target == previous:
            raise ValidationError({"publication_state": [f"Product is already {previous.value}"]})

        now = datetime.now(UTC)
        self.publication_state = target.value
        self.updated_at = now

        self.raise_(
            PublicationStateChanged(
                product_id=self.id,
                previous_state=previous.value,
                new_state=target.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Stock movements (called by the stock ledger only)
    # -------------------------------------------------------------------
    def commit_stock(self, quantity, order_id=None):
        """Deduct stock for an order if enough is available."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        previous = self.available_quantity
        if previous < quantity:
            raise InsufficientStock(
                product_id=str(self.id),
                product_name=self.name,
                requested=quantity,
                available=previous,
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.available_quantity = previous - quantity
            self.total_sold = (self.total_sold or 0) + quantity
            self.updated_at = now

        self.raise_(
            StockCommitted(
                product_id=self.id,
                order_id=order_id,
                quantity=quantity,
                previous_available=previous,
                new_available=self.available_quantity,
                committed_at=now,
            )
        )
        self._check_stock_thresholds(previous)

    def release_stock(self, quantity, order_id=None):
        """Return previously committed stock. ``total_sold`` never goes below zero."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        previous = self.available_quantity
        now = datetime.now(UTC)
        with atomic_change(self):
            self.available_quantity = previous + quantity
            self.total_sold = max((self.total_sold or 0) - quantity, 0)
            self.updated_at = now

        self.raise_(
            StockReleased(
                product_id=self.id,
                order_id=order_id,
                quantity=quantity,
                previous_available=previous,
                new_available=self.available_quantity,
                released_at=now,
            )
        )

    def receive_stock(self, quantity):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        previous = self.available_quantity
        now = datetime.now(UTC)
        self.available_quantity = previous + quantity
        self.updated_at = now

        self.raise_(
            StockReceived(
                product_id=self.id,
                quantity=quantity,
                previous_available=previous,
                new_available=self.available_quantity,
                received_at=now,
            )
        )

    def _check_stock_thresholds(self, previous):
        """Raise an alert event when a commit crosses a stock threshold."""
        now = datetime.now(UTC)
        if self.available_quantity == 0:
            self.raise_(
                OutOfStockDetected(
                    product_id=self.id,
                    name=self.name,
                    detected_at=now,
                )
            )
        elif self.available_quantity <= LOW_STOCK_THRESHOLD < previous:
            self.raise_(
                LowStockDetected(
                    product_id=self.id,
                    name=self.name,
                    available_quantity=self.available_quantity,
                    threshold=LOW_STOCK_THRESHOLD,
                    detected_at=now,
                )
            )
