"""Order validation — turns a placement request into normalized lines.

Each requested line is resolved against the catalogue with a prioritised
fallback policy. Lines that resolve to a product take their name and price
from it and are checked against live stock; lines that don't resolve are
accepted only when explicitly marked promotional.

Validation never mutates a Product. The stock check here is advisory: the
authoritative check is the ledger's compare-and-swap at commit time.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError

from ordering.errors import InsufficientStock, ProductNotFound, ProductUnavailable
from ordering.order.order import PaymentMethod
from ordering.product.catalog import Catalog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NormalizedLine:
    """A validated order line with its final name and price snapshot."""

    name: str
    unit_price: float
    quantity: int
    product_id: str | None = None
    promotional: bool = False

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "promotional": self.promotional,
        }


@dataclass(frozen=True)
class ResolutionStep:
    """Look up the value of ``key`` in a requested line, by id or by name."""

    key: str
    lookup: str = "id"


DEFAULT_RESOLUTION_POLICY = (
    ResolutionStep("product_id", "id"),
    ResolutionStep("id", "id"),
    ResolutionStep("name", "name"),
)


class OrderValidator:
    def __init__(self, catalog=None, resolution_policy=DEFAULT_RESOLUTION_POLICY):
        self.catalog = catalog or Catalog()
        self.resolution_policy = tuple(resolution_policy)

    def validate_request(self, items, shipping_address, payment_method, customer):
        """Check the shape of a placement request before any lookup.

        All problems are reported together in one ``ValidationError``.
        """
        errors = {}

        if not items:
            errors["items"] = ["An order must contain at least one item"]

        address = shipping_address or {}
        missing = [name for name in ("street", "city") if not str(address.get(name) or "").strip()]
        if missing:
            errors["shipping_address"] = [f"Shipping address is missing: {', '.join(missing)}"]

        if payment_method not in {method.value for method in PaymentMethod}:
            errors["payment_method"] = [f"Unsupported payment method: {payment_method}"]

        details = customer or {}
        for name in ("name", "email"):
            if not str(details.get(name) or "").strip():
                errors.setdefault("customer", []).append(f"Customer {name} is required")

        if errors:
            raise ValidationError(errors)

    def validate(self, requested_lines) -> list[NormalizedLine]:
        """Resolve and check every requested line.

        Raises:
            ValidationError: no lines, a bad quantity, or an incomplete
                promotional line.
            ProductNotFound: a non-promotional line matches no product.
            ProductUnavailable: a line matches an unpublished product.
            InsufficientStock: the summed quantity for a product exceeds
                its available stock.
        """
        if not requested_lines:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        normalized = []
        products = {}
        requested = {}

        for index, line in enumerate(requested_lines):
            if not isinstance(line, dict):
                raise ValidationError({"items": [f"Item {index + 1} is not a valid order line"]})

            quantity = _quantity(line, index)
            product = self._resolve(line)

            if product is None:
                if not line.get("promotional"):
                    raise ProductNotFound(_describe(line))
                normalized.append(_promotional_line(line, quantity, index))
                continue

            if not product.is_published:
                raise ProductUnavailable(
                    product_id=str(product.id),
                    product_name=product.name,
                    publication_state=product.publication_state,
                )

            product_id = str(product.id)
            products[product_id] = product
            requested[product_id] = requested.get(product_id, 0) + quantity
            normalized.append(
                NormalizedLine(
                    product_id=product_id,
                    name=product.name,
                    unit_price=product.price,
                    quantity=quantity,
                    promotional=bool(line.get("promotional")),
                )
            )

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.available_quantity < quantity:
                logger.info(
                    "Order rejected for insufficient stock",
                    product_id=product_id,
                    requested=quantity,
                    available=product.available_quantity,
                )
                raise InsufficientStock(
                    product_id=product_id,
                    product_name=product.name,
                    requested=quantity,
                    available=product.available_quantity,
                )

        return normalized

    def _resolve(self, line):
        for step in self.resolution_policy:
            value = line.get(step.key)
            if not value:
                continue
            try:
                if step.lookup == "name":
                    return self.catalog.find_product_by_name(value)
                return self.catalog.find_product(value)
            except ProductNotFound:
                continue
        return None


def _quantity(line, index):
    quantity = line.get("quantity")
    if isinstance(quantity, str) and quantity.strip().isdigit():
        quantity = int(quantity)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError({"items": [f"Item {index + 1}: quantity must be a positive whole number"]})
    return quantity


def _promotional_line(line, quantity, index):
    name = line.get("name")
    unit_price = line.get("unit_price", line.get("price"))
    if not name or isinstance(unit_price, bool) or not isinstance(unit_price, int | float) or unit_price < 0:
        raise ValidationError({"items": [f"Item {index + 1}: promotional items need a name and a unit price"]})

    return NormalizedLine(
        product_id=None,
        name=name,
        unit_price=float(unit_price),
        quantity=quantity,
        promotional=True,
    )


def _describe(line):
    return line.get("product_id") or line.get("id") or line.get("name")
