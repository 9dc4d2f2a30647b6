#!/usr/bin/env python3
"""Seed a sample catalog with generated variants for local development."""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models.attribute import AttributeType, AttributeValue
from backoffice.models.product import Product
from backoffice.services import attribute_catalog, stock_service, variant_matrix

app = create_app()

ATTRIBUTES = {
    "Size": ["S", "M", "L", "XL", "8", "9", "10", "11"],
    "Color": ["Black", "White", "Navy Blue", "Red"],
    "Material": ["Cotton", "Leather", "Canvas"],
}

SAMPLE_PRODUCTS = [
    {
        "code": "SNK-100",
        "name": "Sneaker-100",
        "price_cents": 8999,
        "attributes": ["Size", "Color"],
        "combinations": [
            {"Size": s, "Color": c}
            for s in ("8", "9", "10", "11")
            for c in ("Black", "White")
        ],
        "stock": 12,
    },
    {
        "code": "TEE-200",
        "name": "Classic Tee",
        "price_cents": 1999,
        "attributes": ["Size", "Color"],
        "combinations": [
            {"Size": s, "Color": c}
            for s in ("S", "M", "L", "XL")
            for c in ("Black", "White", "Navy Blue")
        ],
        "stock": 30,
    },
    {
        "code": "BAG-300",
        "name": "Weekender Bag",
        "price_cents": 12900,
        "attributes": ["Color", "Material"],
        "combinations": [
            {"Color": "Black", "Material": "Leather"},
            {"Color": "Navy Blue", "Material": "Canvas"},
            {"Color": "Red", "Material": "Canvas"},
        ],
        "stock": 4,
    },
]


def seed():
    with app.app_context():
        db.create_all()
        if Product.query.first():
            print("Products already exist — skipping seed.")
            return

        for position, (name, values) in enumerate(ATTRIBUTES.items()):
            attr_type = AttributeType(name=name, position=position)
            db.session.add(attr_type)
            db.session.flush()
            for order, value in enumerate(values):
                db.session.add(
                    AttributeValue(
                        attribute_type_id=attr_type.id, value=value, sort_order=order
                    )
                )
        db.session.commit()

        for item in SAMPLE_PRODUCTS:
            product = Product(
                code=item["code"], name=item["name"], base_price_cents=item["price_cents"]
            )
            db.session.add(product)
            attribute_catalog.declare_attributes(product, item["attributes"])
            db.session.commit()

            result = variant_matrix.generate_matrix(
                product.id,
                item["combinations"],
                default_stock=item["stock"],
                created_by="seed",
            )
            # One sold-out variant per product so low-stock views have data.
            if result.created:
                stock_service.set_stock(result.created[0].id, 0, actor="seed")

            print(f"  Created {item['code']}: {len(result.created)} variants")

        print(f"\nSeeded {len(SAMPLE_PRODUCTS)} products.")


if __name__ == "__main__":
    seed()
