"""Catalogue lookup used by order validation.

Read-only: products are returned as loaded and never saved from here.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.errors import ProductNotFound
from ordering.product.product import Product, PublicationState


class Catalog:
    def find_product(self, product_id) -> Product:
        """Return the product with the given id or raise ``ProductNotFound``."""
        if not product_id:
            raise ProductNotFound(product_id)
        try:
            return current_domain.repository_for(Product).get(str(product_id))
        except ObjectNotFoundError:
            raise ProductNotFound(product_id) from None

    def find_product_by_name(self, name, published_only=True) -> Product:
        """Return the first product whose name matches exactly.

        Only published products match unless ``published_only`` is False.
        """
        if not name:
            raise ProductNotFound(name)

        criteria = {"name": name}
        if published_only:
            criteria["publication_state"] = PublicationState.PUBLISHED.value

        products = current_domain.repository_for(Product)._dao.query.filter(**criteria).all().items
        if not products:
            raise ProductNotFound(name)
        return products[0]
