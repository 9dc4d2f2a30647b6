"""Read-only lookup of attribute types, their values, and what a product requires."""
from backoffice.extensions import db
from backoffice.errors import NotFoundError, ValidationError
from backoffice.models.attribute import AttributeType
from backoffice.models.product import product_attribute_types


def list_attribute_types():
    return AttributeType.query.order_by(
        AttributeType.position, AttributeType.name
    ).all()


def get_attribute_type(name):
    attr_type = AttributeType.query.filter_by(name=name).first()
    if not attr_type:
        raise NotFoundError(f"Attribute type {name!r} not found", attribute=name)
    return attr_type


def required_attributes(product):
    """Names of the attribute types the product declares, in declared order."""
    return [t.name for t in product.attribute_types]


def allowed_values(product):
    """Map each required attribute type name to its permitted values."""
    return {t.name: {v.value for v in t.values} for t in product.attribute_types}


def declare_attributes(product, names):
    """Link existing attribute types to a product, in the given order.

    Used by seeding and the CLI; replaces any previous declaration.
    Does not commit.
    """
    db.session.flush()
    types = []
    for name in names:
        attr_type = AttributeType.query.filter_by(name=name).first()
        if not attr_type:
            raise ValidationError(
                f"Unknown attribute type {name!r}", attribute=name
            )
        types.append(attr_type)

    db.session.execute(
        product_attribute_types.delete().where(
            product_attribute_types.c.product_id == product.id
        )
    )
    for position, attr_type in enumerate(types):
        db.session.execute(
            product_attribute_types.insert().values(
                product_id=product.id,
                attribute_type_id=attr_type.id,
                position=position,
            )
        )
    db.session.expire(product, ["attribute_types"])
    return types
