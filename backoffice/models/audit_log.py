from datetime import datetime, timezone
from backoffice.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_log"

    id = db.Column(db.Integer, primary_key=True)
    actor = db.Column(db.String(100), index=True)  # None for system jobs
    action = db.Column(db.String(50), nullable=False)
    product_id = db.Column(
        db.String(36),
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Plain column: the log must outlive deleted variants.
    variant_id = db.Column(db.String(36), nullable=True, index=True)
    payload = db.Column(db.JSON)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    ACTIONS = {
        "GENERATE_MATRIX",
        "CREATE_VARIANT",
        "UPDATE_VARIANT",
        "DELETE_VARIANT",
        "SET_STOCK",
        "ADJUST_STOCK",
        "LOW_STOCK",
        "PLACE_ORDER",
        "CANCEL_ORDER",
        "REFUND_ORDER",
    }

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.actor}>"
