from datetime import datetime, timezone
from backoffice.extensions import db
from backoffice.models.product import new_id


class ProductVariant(db.Model):
    __tablename__ = "product_variants"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(
        db.String(36),
        db.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    attribute_selection = db.Column(db.JSON, nullable=False, default=dict)
    selection_signature = db.Column(db.String(512), nullable=False)
    sku = db.Column(db.String(128), nullable=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    price_override_cents = db.Column(db.Integer)  # None → product base price
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    # Bumped by committed stock mutations only; see stock_service.
    version = db.Column(db.Integer, nullable=False, default=1)
    created_by = db.Column(db.String(100))
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    product = db.relationship("Product", back_populates="variants")

    __table_args__ = (
        db.UniqueConstraint(
            "product_id", "selection_signature", name="uq_variant_selection"
        ),
        db.UniqueConstraint("sku", name="uq_variant_sku"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_variant_stock_nonneg"),
    )

    @property
    def effective_price_cents(self):
        if self.price_override_cents is not None:
            return self.price_override_cents
        return self.product.base_price_cents

    @property
    def is_low_stock(self):
        return self.stock_quantity <= self.low_stock_threshold

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "attribute_selection": self.attribute_selection,
            "sku": self.sku,
            "stock_quantity": self.stock_quantity,
            "price_override_cents": self.price_override_cents,
            "version": self.version,
            "low_stock_threshold": self.low_stock_threshold,
            "is_active": self.is_active,
            "created_by": self.created_by,
        }

    def __repr__(self):
        return f"<ProductVariant {self.sku} stock={self.stock_quantity} v{self.version}>"
