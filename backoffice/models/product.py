import uuid
from datetime import datetime, timezone
from backoffice.extensions import db


def new_id():
    return str(uuid.uuid4())


product_attribute_types = db.Table(
    "product_attribute_types",
    db.Column(
        "product_id",
        db.String(36),
        db.ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "attribute_type_id",
        db.Integer,
        db.ForeignKey("attribute_types.id", ondelete="RESTRICT"),
        primary_key=True,
    ),
    db.Column("position", db.Integer, nullable=False, default=0),
)


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    code = db.Column(db.String(32), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    base_price_cents = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    attribute_types = db.relationship(
        "AttributeType",
        secondary=product_attribute_types,
        lazy="select",
        order_by=product_attribute_types.c.position,
        viewonly=True,
    )
    # Variants are only ever removed explicitly, never through the product.
    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        lazy="select",
        cascade="save-update, merge",
        passive_deletes="all",
        order_by="[ProductVariant.created_at, ProductVariant.id]",
    )

    @property
    def base_price_display(self):
        """Base price in major units for display."""
        return self.base_price_cents / 100

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "base_price_cents": self.base_price_cents,
            "attribute_types": [t.name for t in self.attribute_types],
        }

    def __repr__(self):
        return f"<Product {self.code}: {self.name}>"
