"""Persisted variant records: create, read, update attributes, delete.

Stock is deliberately absent here; it changes only through stock_service.
"""
import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from backoffice.extensions import db
from backoffice.errors import ConflictError, NotFoundError, ValidationError
from backoffice.models.variant import ProductVariant
from backoffice.models.audit_log import AuditLog
from backoffice.services.validators import non_negative_int, optional_non_negative_int
from backoffice.services.variant_matrix import (
    derive_sku,
    find_sku_owner,
    get_product,
    normalize_selection,
    selection_signature,
)

logger = logging.getLogger(__name__)

# Fields update_variant() accepts; stock and version are not among them.
UPDATABLE_FIELDS = {"price_override_cents", "is_active", "low_stock_threshold"}


def create_variant(
    product_id,
    selection,
    stock_quantity=0,
    price_override_cents=None,
    low_stock_threshold=None,
    created_by=None,
):
    """Create a single variant. An existing selection is a ConflictError."""
    product = get_product(product_id)
    selection = normalize_selection(product, selection)
    non_negative_int(stock_quantity, "stock_quantity")
    optional_non_negative_int(price_override_cents, "price_override_cents")
    optional_non_negative_int(low_stock_threshold, "low_stock_threshold")
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config["DEFAULT_LOW_STOCK_THRESHOLD"]

    signature = selection_signature(selection)
    existing = find_by_selection(product.id, signature)
    if existing:
        raise ConflictError(
            f"Variant {_describe(selection)} already exists",
            variant_id=existing.id,
        )

    sku = derive_sku(product, selection)
    owner = find_sku_owner(sku)
    if owner:
        raise ConflictError(
            f"SKU {sku} is already assigned to variant {owner.id}",
            sku=sku,
            variant_id=owner.id,
        )

    variant = ProductVariant(
        product_id=product.id,
        attribute_selection=selection,
        selection_signature=signature,
        sku=sku,
        stock_quantity=stock_quantity,
        price_override_cents=price_override_cents,
        low_stock_threshold=low_stock_threshold,
        created_by=created_by,
    )
    try:
        db.session.add(variant)
        db.session.flush()
        db.session.add(
            AuditLog(
                actor=created_by,
                action="CREATE_VARIANT",
                product_id=product.id,
                variant_id=variant.id,
                payload={"sku": sku, "stock_quantity": stock_quantity},
            )
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(
            f"Variant {_describe(selection)} was created concurrently",
            product_id=product_id,
        )
    return variant


def find_by_selection(product_id, signature):
    return ProductVariant.query.filter_by(
        product_id=product_id, selection_signature=signature
    ).first()


def get_variant(variant_id):
    variant = db.session.get(ProductVariant, variant_id)
    if not variant:
        raise NotFoundError(f"Variant {variant_id} not found", variant_id=variant_id)
    return variant


def list_variants(product_id):
    """Variants of a product in creation order."""
    get_product(product_id)
    return (
        ProductVariant.query.filter_by(product_id=product_id)
        .order_by(ProductVariant.created_at, ProductVariant.id)
        .all()
    )


def _validate_patch(patch):
    if not isinstance(patch, dict) or not patch:
        raise ValidationError("Patch must be a non-empty object")
    unknown = sorted(set(patch) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Cannot update field(s): {', '.join(unknown)}", fields=unknown
        )
    if "price_override_cents" in patch:
        optional_non_negative_int(patch["price_override_cents"], "price_override_cents")
    if "low_stock_threshold" in patch:
        non_negative_int(patch["low_stock_threshold"], "low_stock_threshold")
    if "is_active" in patch and not isinstance(patch["is_active"], bool):
        raise ValidationError("is_active must be a boolean", field="is_active")


def _apply_patch(variant, patch):
    changes = {}
    for field, value in patch.items():
        old = getattr(variant, field)
        if old != value:
            changes[field] = {"old": old, "new": value}
            setattr(variant, field, value)
    return changes


def update_variant(variant_id, patch, actor=None):
    """Update non-stock fields. stock_quantity and version stay untouched."""
    _validate_patch(patch)
    variant = get_variant(variant_id)
    changes = _apply_patch(variant, patch)
    if changes:
        db.session.add(
            AuditLog(
                actor=actor,
                action="UPDATE_VARIANT",
                product_id=variant.product_id,
                variant_id=variant.id,
                payload=changes,
            )
        )
    db.session.commit()
    return variant


def bulk_update_variants(variant_ids, patch, actor=None):
    """Apply one patch to several variants, all or nothing."""
    _validate_patch(patch)
    if not variant_ids:
        return []
    ids = list(dict.fromkeys(variant_ids))
    variants = ProductVariant.query.filter(ProductVariant.id.in_(ids)).all()
    found = {v.id: v for v in variants}
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFoundError(
            f"{len(missing)} variant(s) not found", variant_ids=missing
        )

    for variant_id in ids:
        variant = found[variant_id]
        changes = _apply_patch(variant, patch)
        if changes:
            db.session.add(
                AuditLog(
                    actor=actor,
                    action="UPDATE_VARIANT",
                    product_id=variant.product_id,
                    variant_id=variant.id,
                    payload=changes,
                )
            )
    db.session.commit()
    return [found[i] for i in ids]


def delete_variant(variant_id, reservations_cleared=False, actor=None):
    """Delete a variant.

    The store does not track reservations; the caller must check for open
    orders and pass reservations_cleared=True.
    """
    variant = get_variant(variant_id)
    if not reservations_cleared:
        raise ConflictError(
            f"Variant {variant.sku} may still be reserved by open orders",
            variant_id=variant.id,
        )

    db.session.add(
        AuditLog(
            actor=actor,
            action="DELETE_VARIANT",
            product_id=variant.product_id,
            variant_id=variant.id,
            payload={"sku": variant.sku, "stock_quantity": variant.stock_quantity},
        )
    )
    db.session.delete(variant)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(
            "Variant is still referenced by order lines", variant_id=variant_id
        )
    logger.info("Deleted variant %s", variant_id)


def low_stock_variants(product_id=None):
    """Active variants at or below their low-stock threshold."""
    query = ProductVariant.query.filter(
        ProductVariant.is_active.is_(True),
        ProductVariant.stock_quantity <= ProductVariant.low_stock_threshold,
    )
    if product_id:
        query = query.filter(ProductVariant.product_id == product_id)
    return query.order_by(ProductVariant.stock_quantity, ProductVariant.sku).all()


def variant_stats(product_id):
    variants = list_variants(product_id)
    count = len(variants)
    prices = [v.effective_price_cents for v in variants]
    return {
        "total_variants": count,
        "active_variants": sum(1 for v in variants if v.is_active),
        "total_stock": sum(v.stock_quantity for v in variants),
        "total_value_cents": sum(
            v.stock_quantity * price for v, price in zip(variants, prices)
        ),
        "low_stock_count": sum(1 for v in variants if v.is_low_stock),
        "out_of_stock_count": sum(1 for v in variants if v.stock_quantity == 0),
        "average_price_cents": round(sum(prices) / count) if count else 0,
    }


def _describe(selection):
    return ", ".join(f"{name}={value}" for name, value in selection.items())
