"""Order lifecycle as seen by the stock engine.

Placing an order decrements each line's variant; cancelling or refunding
puts the quantity back. Each adjust_stock call is atomic for its own
variant only, so place_order undoes already-applied lines itself when a
later line fails.
"""
import logging
from datetime import datetime, timezone

from backoffice.extensions import db
from backoffice.errors import ConflictError, NotFoundError, ValidationError
from backoffice.models.order import Order, OrderItem
from backoffice.models.audit_log import AuditLog
from backoffice.services import stock_service
from backoffice.services.validators import integer

logger = logging.getLogger(__name__)


def _normalize_lines(lines):
    if not lines:
        raise ValidationError("An order needs at least one line")
    merged = {}
    for line in lines:
        if not isinstance(line, dict) or "variant_id" not in line:
            raise ValidationError("Each line needs a variant_id and a quantity")
        quantity = integer(line.get("quantity"), "quantity")
        if quantity <= 0:
            raise ValidationError(
                "quantity must be positive", variant_id=line["variant_id"]
            )
        merged[line["variant_id"]] = merged.get(line["variant_id"], 0) + quantity
    return list(merged.items())


def place_order(lines, created_by=None):
    """Reserve stock for every line, then record the order.

    lines: [{"variant_id": ..., "quantity": n}, ...]. On the first failing
    line, every line already decremented is restocked and the original
    error is re-raised.
    """
    lines = _normalize_lines(lines)
    applied = []
    try:
        for variant_id, quantity in lines:
            variant = stock_service.adjust_stock(variant_id, -quantity, actor=created_by)
            applied.append((variant, quantity))
    except Exception:
        _undo([(variant.id, -quantity) for variant, quantity in applied], created_by)
        raise

    try:
        order = Order(status="PENDING", created_by=created_by)
        for variant, quantity in applied:
            order.items.append(
                OrderItem(
                    variant_id=variant.id,
                    quantity=quantity,
                    unit_price_cents=variant.effective_price_cents,
                )
            )
        db.session.add(order)
        db.session.flush()
        db.session.add(
            AuditLog(
                actor=created_by,
                action="PLACE_ORDER",
                payload={"order_id": order.id, "lines": len(applied)},
            )
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        _undo([(variant.id, -quantity) for variant, quantity in applied], created_by)
        raise
    logger.info("Placed order %s with %d line(s)", order.id, len(applied))
    return order


def _undo(adjustments, actor):
    """Reverse already-committed (variant_id, delta) adjustments, last first."""
    for variant_id, delta in reversed(adjustments):
        try:
            stock_service.adjust_stock(variant_id, -delta, actor=actor)
        except Exception:
            # The original failure is what the caller sees; this one needs a human.
            logger.exception(
                "Could not reverse %+d on %s while unwinding an order",
                delta,
                variant_id,
            )
        else:
            logger.warning("Reversed %+d on %s after a failed order step", delta, variant_id)


def get_order(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found", order_id=order_id)
    return order


def cancel_order(order_id, actor=None):
    """PENDING/PROCESSING → CANCELLED, restocking every line."""
    return _release(order_id, Order.OPEN_STATUSES, "CANCELLED", "CANCEL_ORDER", actor)


def refund_order(order_id, actor=None):
    """SHIPPED/DELIVERED → REFUNDED, restocking every line."""
    return _release(
        order_id, Order.REFUNDABLE_STATUSES, "REFUNDED", "REFUND_ORDER", actor
    )


def _release(order_id, from_statuses, to_status, action, actor):
    """Move the order to ``to_status`` and put every line back in stock.

    If a restock fails, the lines already restocked are taken back out and
    the order returns to its previous status, so the call can be retried.
    """
    previous = get_order(order_id).status

    # Claim the transition first so two concurrent cancels restock once.
    claimed = previous in from_statuses and _move_status(order_id, previous, to_status)
    if not claimed:
        db.session.rollback()
        current = db.session.get(Order, order_id, populate_existing=True).status
        raise ConflictError(
            f"Cannot move order from {current} to {to_status}",
            order_id=order_id,
            status=current,
        )
    db.session.add(
        AuditLog(
            actor=actor,
            action=action,
            payload={"order_id": order_id, "from": previous},
        )
    )
    db.session.commit()

    lines = [
        (item.variant_id, item.quantity)
        for item in get_order(order_id).items
        if item.variant_id  # variant deleted since; nothing to put back
    ]
    restocked = []
    try:
        for variant_id, quantity in lines:
            try:
                stock_service.adjust_stock(variant_id, quantity, actor=actor)
            except NotFoundError:
                logger.warning(
                    "Variant %s is gone, not restocking %d for order %s",
                    variant_id,
                    quantity,
                    order_id,
                )
                continue
            restocked.append((variant_id, quantity))
    except Exception:
        _undo(restocked, actor)
        if _move_status(order_id, to_status, previous):
            db.session.commit()
            logger.warning(
                "Order %s back to %s after a failed restock", order_id, previous
            )
        else:
            db.session.rollback()
        raise
    logger.info("Order %s %s, restocked %d line(s)", order_id, to_status, len(restocked))
    return db.session.get(Order, order_id, populate_existing=True)


def _move_status(order_id, from_status, to_status):
    """Conditional status change in the current transaction; True if it applied."""
    return bool(
        db.session.execute(
            db.update(Order)
            .where(Order.id == order_id, Order.status == from_status)
            .values(status=to_status, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        ).rowcount
    )


def has_open_reservations(variant_id):
    """True while an open order still holds stock of this variant."""
    open_items = (
        db.select(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            OrderItem.variant_id == variant_id,
            Order.status.in_(Order.OPEN_STATUSES),
        )
    )
    return bool(db.session.scalar(db.select(open_items.exists())))
