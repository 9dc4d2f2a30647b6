import pytest

from backoffice.errors import NotFoundError, ValidationError
from backoffice.services import attribute_catalog


def test_list_attribute_types_in_position_order(catalog):
    types = attribute_catalog.list_attribute_types()
    assert [t.name for t in types] == ["Size", "Color", "Material"]
    assert [v.value for v in types[0].values] == ["8", "9", "10"]


def test_get_attribute_type(catalog):
    assert attribute_catalog.get_attribute_type("Color").name == "Color"
    with pytest.raises(NotFoundError):
        attribute_catalog.get_attribute_type("Width")


def test_required_attributes_follow_declared_order(make_product):
    product = make_product("BAG-1", attributes=("Material", "Color"))
    assert attribute_catalog.required_attributes(product) == ["Material", "Color"]
    assert attribute_catalog.allowed_values(product) == {
        "Material": {"Canvas", "Leather"},
        "Color": {"Black", "White"},
    }


def test_declare_attributes_replaces_previous(db, make_product):
    product = make_product("BAG-2", attributes=("Size",))
    attribute_catalog.declare_attributes(product, ["Color"])
    db.session.commit()
    assert attribute_catalog.required_attributes(product) == ["Color"]


def test_declare_unknown_attribute(make_product):
    product = make_product("BAG-3", attributes=())
    with pytest.raises(ValidationError):
        attribute_catalog.declare_attributes(product, ["Width"])
