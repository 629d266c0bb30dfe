"""Shared BDD fixtures and step definitions for the order lifecycle."""

import json

import pytest
from ordering.order.order import Order
from ordering.order.placement import PlaceOrder
from ordering.product.product import Product
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture()
def catalogue():
    """Products added by Given steps, keyed by name."""
    return {}


@pytest.fixture()
def placed():
    """Ids of successfully placed orders, in placement order."""
    return []


@pytest.fixture()
def error():
    """Container for the error raised by the last When step."""
    return {"exc": None}


@pytest.fixture()
def place_order(catalogue):
    """Place a single-line order for a catalogue product and return its id."""

    def _place(name, quantity, payment_method):
        return current_domain.process(
            PlaceOrder(
                items=json.dumps([{"product_id": catalogue[name], "quantity": quantity}]),
                shipping_address=json.dumps({"street": "12 Lake Road", "city": "Pune"}),
                customer_name="Asha Verma",
                customer_email="asha@example.com",
                payment_method=payment_method,
            ),
            asynchronous=False,
        )

    return _place


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.parse('a published product "{name}" with {quantity:d} units in stock'))
def _(catalogue, name, quantity):
    product = Product.add(name=name, price=25.0, quantity=quantity, publication_state="Published")
    current_domain.repository_for(Product).add(product)
    catalogue[name] = str(product.id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.parse('"{name}" has {quantity:d} units in stock'))
def _(catalogue, name, quantity):
    assert current_domain.repository_for(Product).get(catalogue[name]).available_quantity == quantity


@then(parsers.parse('the order is "{status}"'))
def _(placed, status):
    assert current_domain.repository_for(Order).get(placed[-1]).status == status


@then(parsers.parse('the first order is "{status}"'))
def _(placed, status):
    assert current_domain.repository_for(Order).get(placed[0]).status == status
