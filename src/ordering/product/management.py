"""Catalogue management — commands and handler.

Stock arrives through ``RestockProduct``, which goes through the stock ledger
like every other stock movement.
"""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.product.catalog import Catalog
from ordering.product.product import Product, PublicationState
from ordering.stock.ledger import StockLedger


@ordering.command(part_of="Product")
class AddProduct:
    name: String(required=True, max_length=255)
    price: Float(required=True, min_value=0.0)
    quantity: Integer(default=0, min_value=0)
    category: String(max_length=100)
    publication_state: String(choices=PublicationState, default=PublicationState.DRAFT.value)


@ordering.command(part_of="Product")
class ChangePublicationState:
    product_id: Identifier(required=True)
    publication_state: String(required=True, choices=PublicationState)


@ordering.command(part_of="Product")
class RestockProduct:
    """Add received units to a product's available stock."""

    product_id: Identifier(required=True)
    quantity: Integer(required=True, min_value=1)


@ordering.command_handler(part_of=Product)
class ManageProductHandler:
    @handle(AddProduct)
    def add_product(self, command):
        product = Product.add(
            name=command.name,
            price=command.price,
            quantity=command.quantity or 0,
            category=command.category,
            publication_state=command.publication_state,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(ChangePublicationState)
    def change_publication_state(self, command):
        product = Catalog().find_product(command.product_id)
        product.change_publication_state(command.publication_state)
        current_domain.repository_for(Product).add(product)

    @handle(RestockProduct)
    def restock_product(self, command):
        movement = StockLedger().restock(command.product_id, command.quantity)
        return movement.available_quantity
