"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class ProductAdded:
    """A product was added to the catalogue."""

    __version__ = 1

    product_id: Identifier(required=True)
    name: String(required=True)
    price: Float(required=True)
    available_quantity: Integer(required=True)
    publication_state: String(required=True)
    added_at: DateTime(required=True)


@ordering.event(part_of="Product")
class PublicationStateChanged:
    __version__ = 1

    product_id: Identifier(required=True)
    previous_state: String(required=True)
    new_state: String(required=True)
    changed_at: DateTime(required=True)


@ordering.event(part_of="Product")
class StockCommitted:
    """Stock was deducted for an order."""

    __version__ = 1

    product_id: Identifier(required=True)
    order_id: Identifier()
    quantity: Integer(required=True)
    previous_available: Integer(required=True)
    new_available: Integer(required=True)
    committed_at: DateTime(required=True)


@ordering.event(part_of="Product")
class StockReleased:
    """Previously committed stock was returned to availability."""

    __version__ = 1

    product_id: Identifier(required=True)
    order_id: Identifier()
    quantity: Integer(required=True)
    previous_available: Integer(required=True)
    new_available: Integer(required=True)
    released_at: DateTime(required=True)


@ordering.event(part_of="Product")
class StockReceived:
    __version__ = 1

    product_id: Identifier(required=True)
    quantity: Integer(required=True)
    previous_available: Integer(required=True)
    new_available: Integer(required=True)
    received_at: DateTime(required=True)


@ordering.event(part_of="Product")
class LowStockDetected:
    """Available stock dropped to or below the low-stock threshold."""

    __version__ = 1

    product_id: Identifier(required=True)
    name: String(required=True)
    available_quantity: Integer(required=True)
    threshold: Integer(required=True)
    detected_at: DateTime(required=True)


@ordering.event(part_of="Product")
class OutOfStockDetected:
    """Available stock reached zero."""

    __version__ = 1

    product_id: Identifier(required=True)
    name: String(required=True)
    detected_at: DateTime(required=True)
