"""Concurrency-safe stock mutations.

set_stock() is an absolute admin correction, adjust_stock() a relative
change driven by the order lifecycle. Both use optimistic concurrency:

    read (quantity, version) -> compute -> UPDATE ... WHERE version = read

and retry from a fresh read when another writer got there first. The
negative-stock check for adjustments always runs against the quantity read
in the current attempt. After STOCK_MAX_ATTEMPTS lost races the caller gets
a ConcurrencyConflictError instead of a silently lost update.

Each call commits or rolls back the current session; only one variant is
touched per call, so multi-line orders compensate on their own.
"""
import logging
import random
import time
from datetime import datetime, timezone

from flask import current_app

import backoffice.extensions as ext
from backoffice.extensions import db
from backoffice.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
)
from backoffice.models.variant import ProductVariant
from backoffice.models.audit_log import AuditLog
from backoffice.services.validators import integer, non_negative_int

logger = logging.getLogger(__name__)


def set_stock(variant_id, quantity, actor=None):
    """Make the variant's stock exactly ``quantity``."""
    non_negative_int(quantity, "quantity")
    return _mutate_stock(
        variant_id,
        lambda current: quantity,
        action="SET_STOCK",
        actor=actor,
        payload={"quantity": quantity},
    )


def adjust_stock(variant_id, delta, actor=None):
    """Add ``delta`` (negative to decrement) to the variant's stock.

    Raises InsufficientStockError rather than going below zero.
    """
    integer(delta, "delta")

    def compute(current):
        candidate = current + delta
        if candidate < 0:
            raise InsufficientStockError(variant_id, requested=delta, available=current)
        return candidate

    return _mutate_stock(
        variant_id,
        compute,
        action="ADJUST_STOCK",
        actor=actor,
        payload={"delta": delta},
    )


def read_stock(variant_id):
    """Current (stock_quantity, version, low_stock_threshold, product_id) or None."""
    return db.session.execute(
        db.select(
            ProductVariant.stock_quantity,
            ProductVariant.version,
            ProductVariant.low_stock_threshold,
            ProductVariant.product_id,
        ).where(ProductVariant.id == variant_id)
    ).first()


def _mutate_stock(variant_id, compute, action, actor, payload):
    max_attempts = current_app.config["STOCK_MAX_ATTEMPTS"]
    backoff = current_app.config["STOCK_RETRY_BACKOFF"]

    for attempt in range(1, max_attempts + 1):
        row = read_stock(variant_id)
        if row is None:
            db.session.rollback()
            raise NotFoundError(f"Variant {variant_id} not found", variant_id=variant_id)
        current, version, threshold, product_id = row

        try:
            candidate = compute(current)
        except InsufficientStockError:
            db.session.rollback()
            raise

        result = db.session.execute(
            db.update(ProductVariant)
            .where(ProductVariant.id == variant_id, ProductVariant.version == version)
            .values(
                stock_quantity=candidate,
                version=version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.session.add(
                AuditLog(
                    actor=actor,
                    action=action,
                    product_id=product_id,
                    variant_id=variant_id,
                    payload=dict(
                        payload, old=current, new=candidate, version=version + 1
                    ),
                )
            )
            db.session.commit()
            if current > threshold >= candidate:
                _enqueue_low_stock_alert(variant_id, candidate, threshold)
            return db.session.get(ProductVariant, variant_id, populate_existing=True)

        # Lost the race. Rolling back also ends the read transaction, so the
        # next attempt sees the winner's committed row.
        db.session.rollback()
        logger.info(
            "Stock for %s changed under us (attempt %d/%d, saw v%d)",
            variant_id,
            attempt,
            max_attempts,
            version,
        )
        if backoff and attempt < max_attempts:
            time.sleep(random.uniform(0, backoff * attempt))

    logger.warning(
        "Giving up on %s for %s after %d attempts", action, variant_id, max_attempts
    )
    raise ConcurrencyConflictError(variant_id, attempts=max_attempts)


def _enqueue_low_stock_alert(variant_id, quantity, threshold):
    from backoffice.workers.stock_alerts import record_low_stock

    ext.task_queue.enqueue(record_low_stock, variant_id, quantity, threshold)
