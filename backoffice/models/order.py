from datetime import datetime, timezone
from backoffice.extensions import db
from backoffice.models.product import new_id


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    created_by = db.Column(db.String(100))
    notes = db.Column(db.Text, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = db.relationship(
        "OrderItem", backref="order", lazy="select", cascade="all, delete-orphan"
    )

    VALID_STATUSES = {
        "PENDING",
        "PROCESSING",
        "SHIPPED",
        "DELIVERED",
        "CANCELLED",
        "REFUNDED",
    }
    # Stock is still held for these; their variants cannot be deleted.
    OPEN_STATUSES = ("PENDING", "PROCESSING")
    REFUNDABLE_STATUSES = ("SHIPPED", "DELIVERED")

    @property
    def total_cents(self):
        return sum(item.quantity * item.unit_price_cents for item in self.items)

    def to_dict(self):
        return {
            "id": self.id,
            "status": self.status,
            "created_by": self.created_by,
            "total_cents": self.total_cents,
            "items": [
                {
                    "variant_id": item.variant_id,
                    "quantity": item.quantity,
                    "unit_price_cents": item.unit_price_cents,
                }
                for item in self.items
            ],
        }

    def __repr__(self):
        return f"<Order {self.id} [{self.status}]>"


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.String(36),
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    variant_id = db.Column(
        db.String(36),
        db.ForeignKey("product_variants.id", ondelete="SET NULL"),
        nullable=True,  # history survives variant deletion
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    def __repr__(self):
        return f"<OrderItem {self.variant_id} x{self.quantity}>"
