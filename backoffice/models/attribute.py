from backoffice.extensions import db


class AttributeType(db.Model):
    __tablename__ = "attribute_types"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # "Size", "Color"
    position = db.Column(db.Integer, default=0)

    values = db.relationship(
        "AttributeValue",
        backref="attribute_type",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="[AttributeValue.sort_order, AttributeValue.value]",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "values": [v.value for v in self.values],
        }

    def __repr__(self):
        return f"<AttributeType {self.name}>"


class AttributeValue(db.Model):
    __tablename__ = "attribute_values"

    id = db.Column(db.Integer, primary_key=True)
    attribute_type_id = db.Column(
        db.Integer,
        db.ForeignKey("attribute_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    value = db.Column(db.String(100), nullable=False)  # "US 9", "Black"
    sort_order = db.Column(db.Integer, default=0)

    __table_args__ = (
        db.UniqueConstraint("attribute_type_id", "value", name="uq_attribute_value"),
    )

    def __repr__(self):
        return f"<AttributeValue {self.value}>"
