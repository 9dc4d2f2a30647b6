"""JSON route handlers for the admin back office.

Each handler parses the body, calls one service function and serializes the
result. Typed service failures become 400/404/409 in handle_engine_error.
"""
import logging
from flask import request, g
from werkzeug.exceptions import HTTPException

from backoffice.blueprints.admin import admin_bp
from backoffice.errors import ValidationError, VariantEngineError
from backoffice.services import (
    attribute_catalog,
    order_service,
    stock_service,
    variant_matrix,
    variant_service,
)

logger = logging.getLogger(__name__)


def _json_body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _variants(variants):
    return [v.to_dict() for v in variants]


# ---------------------------------------------------------------------------
# Attribute catalog
# ---------------------------------------------------------------------------

@admin_bp.route("/attributes")
def list_attributes():
    return {"attributes": [t.to_dict() for t in attribute_catalog.list_attribute_types()]}


# ---------------------------------------------------------------------------
# Variants per product
# ---------------------------------------------------------------------------

@admin_bp.route("/products/<product_id>/variants")
def list_product_variants(product_id):
    return {"variants": _variants(variant_service.list_variants(product_id))}


@admin_bp.route("/products/<product_id>/variants", methods=["POST"])
def create_product_variant(product_id):
    body = _json_body()
    variant = variant_service.create_variant(
        product_id,
        body.get("attribute_selection"),
        stock_quantity=body.get("stock_quantity", 0),
        price_override_cents=body.get("price_override_cents"),
        low_stock_threshold=body.get("low_stock_threshold"),
        created_by=g.actor,
    )
    return variant.to_dict(), 201


@admin_bp.route("/products/<product_id>/variants/matrix", methods=["POST"])
def generate_product_matrix(product_id):
    body = _json_body()
    combinations = body.get("combinations", [])
    if not isinstance(combinations, list):
        raise ValidationError("combinations must be a list")
    result = variant_matrix.generate_matrix(
        product_id,
        combinations,
        default_stock=body.get("default_stock", 0),
        price_override_cents=body.get("price_override_cents"),
        low_stock_threshold=body.get("low_stock_threshold"),
        created_by=g.actor,
    )
    status = 201 if result.created else 200
    return {"created": _variants(result.created), "skipped": result.skipped}, status


@admin_bp.route("/products/<product_id>/variants/stats")
def product_variant_stats(product_id):
    return variant_service.variant_stats(product_id)


# ---------------------------------------------------------------------------
# Single variants
# ---------------------------------------------------------------------------

@admin_bp.route("/variants/low-stock")
def low_stock():
    product_id = request.args.get("product_id")
    return {"variants": _variants(variant_service.low_stock_variants(product_id))}


@admin_bp.route("/variants/bulk", methods=["PATCH"])
def bulk_update():
    body = _json_body()
    variant_ids = body.get("variant_ids")
    if not isinstance(variant_ids, list):
        raise ValidationError("variant_ids must be a list")
    variants = variant_service.bulk_update_variants(
        variant_ids, body.get("updates"), actor=g.actor
    )
    return {"variants": _variants(variants)}


@admin_bp.route("/variants/<variant_id>")
def get_variant(variant_id):
    return variant_service.get_variant(variant_id).to_dict()


@admin_bp.route("/variants/<variant_id>", methods=["PATCH"])
def update_variant(variant_id):
    variant = variant_service.update_variant(variant_id, _json_body(), actor=g.actor)
    return variant.to_dict()


@admin_bp.route("/variants/<variant_id>", methods=["DELETE"])
def delete_variant(variant_id):
    cleared = not order_service.has_open_reservations(variant_id)
    variant_service.delete_variant(
        variant_id, reservations_cleared=cleared, actor=g.actor
    )
    return {"success": True}


# Set and adjust are separate endpoints; the body never picks the operation.
@admin_bp.route("/variants/<variant_id>/stock", methods=["PUT"])
def set_variant_stock(variant_id):
    body = _json_body()
    if "quantity" not in body:
        raise ValidationError("quantity is required")
    variant = stock_service.set_stock(variant_id, body["quantity"], actor=g.actor)
    return variant.to_dict()


@admin_bp.route("/variants/<variant_id>/stock/adjust", methods=["POST"])
def adjust_variant_stock(variant_id):
    body = _json_body()
    if "delta" not in body:
        raise ValidationError("delta is required")
    variant = stock_service.adjust_stock(variant_id, body["delta"], actor=g.actor)
    return variant.to_dict()


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

@admin_bp.route("/orders", methods=["POST"])
def place_order():
    body = _json_body()
    order = order_service.place_order(body.get("lines"), created_by=g.actor)
    return order.to_dict(), 201


@admin_bp.route("/orders/<order_id>/cancel", methods=["POST"])
def cancel_order(order_id):
    return order_service.cancel_order(order_id, actor=g.actor).to_dict()


@admin_bp.route("/orders/<order_id>/refund", methods=["POST"])
def refund_order(order_id):
    return order_service.refund_order(order_id, actor=g.actor).to_dict()


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

@admin_bp.errorhandler(VariantEngineError)
def handle_engine_error(error):
    return error.to_dict(), error.status_code


@admin_bp.errorhandler(Exception)
def handle_unexpected_error(error):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Unhandled error in admin API")
    return {"error": "internal_error", "message": "Something went wrong"}, 500
