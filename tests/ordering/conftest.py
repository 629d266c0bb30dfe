import pytest


@pytest.fixture(scope="session")
def _ordering_domain():
    """Initialize the ordering domain once per session."""
    from ordering.domain import ordering

    ordering.init()
    return ordering


@pytest.fixture(scope="session", autouse=True)
def setup_db(_ordering_domain):
    from ordering.utils.db import drop_db, setup_db

    setup_db(_ordering_domain)

    yield

    drop_db(_ordering_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_ordering_domain, monkeypatch):
    """Push domain context before each test, cleanup after."""
    monkeypatch.delenv("ORDERING_COMMIT_POLICY", raising=False)
    ctx = _ordering_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain

    from ordering.notification import reset_dispatcher

    reset_dispatcher()

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()


@pytest.fixture()
def dispatcher():
    """A recording dispatcher installed as the active notification sink."""
    from ordering.notification import set_dispatcher
    from ordering.notification.fake_dispatcher import FakeDispatcher

    fake = FakeDispatcher()
    set_dispatcher(fake)
    return fake


@pytest.fixture()
def add_product():
    """Persist a product and return it."""
    from protean import current_domain

    from ordering.product.product import Product, PublicationState

    def _add(name="Linen Shirt", price=40.0, quantity=5, publication_state=PublicationState.PUBLISHED.value):
        product = Product.add(name=name, price=price, quantity=quantity, publication_state=publication_state)
        current_domain.repository_for(Product).add(product)
        return current_domain.repository_for(Product).get(product.id)

    return _add


@pytest.fixture()
def customer():
    return {"name": "Asha Verma", "email": "asha@example.com", "phone": "555-0100"}


@pytest.fixture()
def address():
    return {"street": "12 Lake Road", "city": "Pune", "state": "MH", "postal_code": "411001", "country": "IN"}
