"""Bulk variant creation from selected attribute combinations.

generate_matrix() expands a list of combinations such as
``[{"Size": "8", "Color": "Black"}, {"Size": "9", "Color": "White"}]`` into
ProductVariant rows. It is safe to re-run with overlapping input: existing
combinations are skipped and SKUs are derived from the product and the
selection alone, so a retry after a failure assigns the same SKUs.
"""
import hashlib
import json
import logging
import re
from collections import namedtuple
from collections.abc import Mapping

from flask import current_app
from sqlalchemy.exc import IntegrityError

from backoffice.extensions import db
from backoffice.errors import ConflictError, NotFoundError, ValidationError
from backoffice.models.product import Product
from backoffice.models.variant import ProductVariant
from backoffice.models.audit_log import AuditLog
from backoffice.services import attribute_catalog
from backoffice.services.validators import non_negative_int, optional_non_negative_int

logger = logging.getLogger(__name__)

MatrixResult = namedtuple("MatrixResult", ["created", "skipped"])

# A concurrent generator may insert the same rows between our existence
# check and our commit; one re-run is enough to skip them.
MATRIX_ATTEMPTS = 2


def get_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found", product_id=product_id)
    return product


def normalize_selection(product, combination, required=None, allowed=None):
    """Validate one combination against the product's attribute types.

    Returns the selection as a dict ordered by the product's declared
    attribute order, with values as stripped strings.
    """
    if required is None:
        required = attribute_catalog.required_attributes(product)
    if allowed is None:
        allowed = attribute_catalog.allowed_values(product)

    if not isinstance(combination, Mapping):
        raise ValidationError(
            "Each combination must map attribute types to values",
            combination=repr(combination),
        )

    cleaned = {}
    for name, value in combination.items():
        name = str(name).strip()
        if name in cleaned:
            raise ValidationError(
                f"Attribute type {name} is given more than once", attribute=name
            )
        cleaned[name] = value

    unknown = sorted(name for name in cleaned if name not in allowed)
    if unknown:
        raise ValidationError(
            f"Unrecognized attribute type(s): {', '.join(unknown)}",
            attributes=unknown,
        )
    missing = [name for name in required if name not in cleaned]
    if missing:
        raise ValidationError(
            f"Missing value for attribute type(s): {', '.join(missing)}",
            attributes=missing,
        )

    selection = {}
    for name in required:
        value = cleaned[name]
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValidationError(
                f"Value for {name} must be a string", attribute=name
            )
        value = str(value).strip()
        if value not in allowed[name]:
            raise ValidationError(
                f"{value!r} is not a permitted value for {name}",
                attribute=name,
                value=value,
            )
        selection[name] = value
    return selection


def selection_signature(selection):
    """Order-independent encoding of a selection, e.g.
    ``[["Color","Black"],["Size","8"]]``."""
    return json.dumps(
        sorted(selection.items()), separators=(",", ":"), ensure_ascii=False
    )


def _code(text, limit=None):
    code = re.sub(r"[^0-9A-Za-z]", "", text).upper()
    if limit:
        code = code[:limit]
    return code or "X"


def derive_sku(product, selection):
    """Readable prefix plus a digest of product id and signature.

    The readable part can collide ("US 9" vs "US-9"); the digest cannot in
    practice, so distinct selections always get distinct SKUs.
    """
    signature = selection_signature(selection)
    digest = hashlib.sha1(f"{product.id}:{signature}".encode("utf-8")).hexdigest()
    parts = [_code(product.code)]
    parts.extend(_code(value, 6) for _, value in sorted(selection.items()))
    parts.append(digest[:8].upper())
    return "-".join(parts)


def find_sku_owner(sku):
    return ProductVariant.query.filter_by(sku=sku).first()


def generate_matrix(
    product_id,
    combinations,
    default_stock=0,
    price_override_cents=None,
    low_stock_threshold=None,
    created_by=None,
):
    """Create one variant per distinct new combination, all or nothing.

    Returns MatrixResult(created=[ProductVariant...], skipped=[signature...]).
    """
    product = get_product(product_id)
    if not combinations:
        return MatrixResult([], [])

    non_negative_int(default_stock, "default_stock")
    optional_non_negative_int(price_override_cents, "price_override_cents")
    optional_non_negative_int(low_stock_threshold, "low_stock_threshold")
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config["DEFAULT_LOW_STOCK_THRESHOLD"]

    required = attribute_catalog.required_attributes(product)
    allowed = attribute_catalog.allowed_values(product)

    # Dedupe by signature, keeping first-seen order.
    selections = {}
    for combination in combinations:
        selection = normalize_selection(product, combination, required, allowed)
        selections.setdefault(selection_signature(selection), selection)

    for attempt in range(1, MATRIX_ATTEMPTS + 1):
        try:
            return _persist_matrix(
                product,
                selections,
                default_stock,
                price_override_cents,
                low_stock_threshold,
                created_by,
            )
        except IntegrityError:
            db.session.rollback()
            if attempt == MATRIX_ATTEMPTS:
                logger.warning(
                    "Matrix generation for %s hit unique constraints twice",
                    product_id,
                )
                raise ConflictError(
                    "Variants for this product changed concurrently, try again",
                    product_id=product_id,
                )
            logger.info(
                "Matrix generation for %s raced another writer, re-checking",
                product_id,
            )


def _persist_matrix(
    product, selections, stock, price_override_cents, low_stock_threshold, created_by
):
    existing = set(
        db.session.scalars(
            db.select(ProductVariant.selection_signature).where(
                ProductVariant.product_id == product.id
            )
        )
    )
    skipped = [sig for sig in selections if sig in existing]
    pending = [(sig, sel) for sig, sel in selections.items() if sig not in existing]
    if not pending:
        logger.info("Matrix for %s: nothing new (%d skipped)", product.code, len(skipped))
        return MatrixResult([], skipped)

    skus = [derive_sku(product, sel) for _, sel in pending]
    taken = ProductVariant.query.filter(ProductVariant.sku.in_(skus)).first()
    if taken:
        db.session.rollback()
        raise ConflictError(
            f"SKU {taken.sku} is already assigned to variant {taken.id}",
            sku=taken.sku,
            variant_id=taken.id,
        )

    variants = [
        ProductVariant(
            product_id=product.id,
            attribute_selection=sel,
            selection_signature=sig,
            sku=sku,
            stock_quantity=stock,
            price_override_cents=price_override_cents,
            low_stock_threshold=low_stock_threshold,
            created_by=created_by,
        )
        for (sig, sel), sku in zip(pending, skus)
    ]
    db.session.add_all(variants)
    db.session.add(
        AuditLog(
            actor=created_by,
            action="GENERATE_MATRIX",
            product_id=product.id,
            payload={
                "created": [v.sku for v in variants],
                "skipped": len(skipped),
                "default_stock": stock,
            },
        )
    )
    db.session.commit()

    logger.info(
        "Matrix for %s: created %d variants, skipped %d",
        product.code,
        len(variants),
        len(skipped),
    )
    return MatrixResult(variants, skipped)
