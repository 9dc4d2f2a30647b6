from backoffice.models.product import Product, product_attribute_types
from backoffice.models.attribute import AttributeType, AttributeValue
from backoffice.models.variant import ProductVariant
from backoffice.models.order import Order, OrderItem
from backoffice.models.audit_log import AuditLog

__all__ = [
    "Product",
    "product_attribute_types",
    "AttributeType",
    "AttributeValue",
    "ProductVariant",
    "Order",
    "OrderItem",
    "AuditLog",
]
