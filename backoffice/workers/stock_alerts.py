"""RQ worker job: record that a variant has dropped to its low-stock threshold."""
import logging
from flask import current_app, has_app_context
from backoffice.extensions import db
from backoffice.models.variant import ProductVariant
from backoffice.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI),
    otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        from backoffice import create_app

        _worker_app = create_app()
    return _worker_app


def record_low_stock(variant_id, quantity, threshold):
    """Write a LOW_STOCK audit entry for the variant.

    Enqueued by stock_service after a committed mutation crosses the
    threshold. The quantity may have moved again by the time this runs;
    the entry records the value at the crossing.
    """
    app = _get_app()
    with app.app_context():
        variant = db.session.get(ProductVariant, variant_id)
        if not variant:
            logger.info("Variant %s gone before low-stock alert, skipping", variant_id)
            return None

        entry = AuditLog(
            action="LOW_STOCK",
            product_id=variant.product_id,
            variant_id=variant.id,
            payload={
                "sku": variant.sku,
                "quantity": quantity,
                "threshold": threshold,
            },
        )
        db.session.add(entry)
        db.session.commit()
        logger.warning(
            "Low stock: %s at %d (threshold %d)", variant.sku, quantity, threshold
        )
        return entry.id
