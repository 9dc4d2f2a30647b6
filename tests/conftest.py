import pytest
from backoffice import create_app
from backoffice.extensions import db as _db
from backoffice.models.attribute import AttributeType, AttributeValue
from backoffice.models.product import Product
from backoffice.services import attribute_catalog


CATALOG = {
    "Size": ["8", "9", "10"],
    "Color": ["Black", "White"],
    "Material": ["Canvas", "Leather"],
}


@pytest.fixture(scope="session")
def app():
    """Create application for testing."""
    app = create_app("testing")
    with app.app_context():
        yield app


@pytest.fixture
def db(app):
    """Fresh schema per test; services commit, so nested rollback won't do."""
    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture
def admin_headers(app):
    return {
        "X-Admin-Token": app.config["ADMIN_API_TOKEN"],
        "X-Admin-Id": "admin-1",
    }


@pytest.fixture
def catalog(db):
    """Size/Color/Material attribute types with their values."""
    types = {}
    for position, (name, values) in enumerate(CATALOG.items()):
        attr_type = AttributeType(name=name, position=position)
        db.session.add(attr_type)
        db.session.flush()
        for order, value in enumerate(values):
            db.session.add(
                AttributeValue(attribute_type_id=attr_type.id, value=value, sort_order=order)
            )
        types[name] = attr_type
    db.session.commit()
    return types


@pytest.fixture
def make_product(db, catalog):
    def _make(code, name=None, attributes=("Size", "Color"), base_price_cents=10000):
        product = Product(code=code, name=name or code, base_price_cents=base_price_cents)
        db.session.add(product)
        attribute_catalog.declare_attributes(product, list(attributes))
        db.session.commit()
        return product

    return _make


@pytest.fixture
def sneaker(make_product):
    return make_product("SNK-100", "Sneaker-100", base_price_cents=8999)
