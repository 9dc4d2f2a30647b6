"""Flask CLI commands for admin operations."""
import json
import click
from flask import current_app


DEMO_ATTRIBUTES = {
    "Size": ["8", "9", "10", "11"],
    "Color": ["Black", "White", "Red"],
}


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables (use `flask db upgrade` for managed schemas)."""
        from backoffice.extensions import db

        db.create_all()
        click.echo(f"Database initialized: {current_app.config['SQLALCHEMY_DATABASE_URI']}")

    @app.cli.command("seed-demo")
    def seed_demo():
        """Seed the Size/Color catalog and the Sneaker-100 product (idempotent)."""
        from backoffice.extensions import db
        from backoffice.models.attribute import AttributeType, AttributeValue
        from backoffice.models.product import Product
        from backoffice.services import attribute_catalog

        for position, (name, values) in enumerate(DEMO_ATTRIBUTES.items()):
            attr_type = AttributeType.query.filter_by(name=name).first()
            if not attr_type:
                attr_type = AttributeType(name=name, position=position)
                db.session.add(attr_type)
                db.session.flush()
            existing = {v.value for v in attr_type.values}
            for order, value in enumerate(values):
                if value not in existing:
                    db.session.add(
                        AttributeValue(
                            attribute_type_id=attr_type.id, value=value, sort_order=order
                        )
                    )
        db.session.flush()

        if Product.query.filter_by(code="SNK-100").first():
            db.session.commit()
            click.echo("Sneaker-100 already exists — catalog refreshed only.")
            return

        product = Product(code="SNK-100", name="Sneaker-100", base_price_cents=8999)
        db.session.add(product)
        attribute_catalog.declare_attributes(product, list(DEMO_ATTRIBUTES))
        db.session.commit()
        click.echo(f"Seeded Sneaker-100 ({product.id}) with Size x Color.")

    @app.cli.command("generate-matrix")
    @click.argument("product_code")
    @click.option(
        "--combination",
        "-c",
        "combinations",
        multiple=True,
        required=True,
        help='JSON object, e.g. \'{"Size": "9", "Color": "Black"}\'',
    )
    @click.option("--stock", default=0, type=int, help="Initial stock per new variant")
    @click.option("--actor", default="cli")
    def generate_matrix(product_code, combinations, stock, actor):
        """Create variants for a product from attribute combinations."""
        from backoffice.errors import VariantEngineError
        from backoffice.services import variant_matrix

        product = _product_by_code(product_code)
        try:
            parsed = [json.loads(c) for c in combinations]
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Invalid JSON combination: {e}")
        try:
            result = variant_matrix.generate_matrix(
                product.id, parsed, default_stock=stock, created_by=actor
            )
        except VariantEngineError as e:
            raise click.ClickException(e.message)
        for variant in result.created:
            click.echo(f"  created {variant.sku} (stock {variant.stock_quantity})")
        click.echo(f"Created {len(result.created)}, skipped {len(result.skipped)}.")

    @app.cli.command("set-stock")
    @click.argument("sku")
    @click.argument("quantity", type=int)
    @click.option("--actor", default="cli")
    def set_stock(sku, quantity, actor):
        """Set a variant's stock to an exact quantity."""
        from backoffice.errors import VariantEngineError
        from backoffice.services import stock_service

        variant = _variant_by_sku(sku)
        try:
            variant = stock_service.set_stock(variant.id, quantity, actor=actor)
        except VariantEngineError as e:
            raise click.ClickException(e.message)
        click.echo(f"{variant.sku}: stock {variant.stock_quantity} (v{variant.version})")

    @app.cli.command("adjust-stock")
    @click.argument("sku")
    @click.argument("delta", type=int)
    @click.option("--actor", default="cli")
    def adjust_stock(sku, delta, actor):
        """Add (or, with a negative delta, remove) stock."""
        from backoffice.errors import VariantEngineError
        from backoffice.services import stock_service

        variant = _variant_by_sku(sku)
        try:
            variant = stock_service.adjust_stock(variant.id, delta, actor=actor)
        except VariantEngineError as e:
            raise click.ClickException(e.message)
        click.echo(f"{variant.sku}: stock {variant.stock_quantity} (v{variant.version})")

    @app.cli.command("low-stock")
    @click.option("--product", "product_code", default=None)
    def low_stock(product_code):
        """List active variants at or below their low-stock threshold."""
        from backoffice.services import variant_service

        product_id = _product_by_code(product_code).id if product_code else None
        variants = variant_service.low_stock_variants(product_id)
        if not variants:
            click.echo("No low-stock variants.")
            return
        for v in variants:
            click.echo(f"  {v.sku}: {v.stock_quantity} (threshold {v.low_stock_threshold})")

    @app.cli.command("stats")
    @click.argument("product_code")
    def stats(product_code):
        """Show variant statistics for a product."""
        from backoffice.services import variant_service

        s = variant_service.variant_stats(_product_by_code(product_code).id)
        for key, value in s.items():
            click.echo(f"  {key}: {value}")


def _product_by_code(code):
    from backoffice.models.product import Product

    from backoffice.extensions import db

    product = Product.query.filter(
        db.func.upper(Product.code) == code.strip().upper()
    ).first()
    if not product:
        raise click.ClickException(f"No product with code {code}")
    return product


def _variant_by_sku(sku):
    from backoffice.models.variant import ProductVariant

    variant = ProductVariant.query.filter_by(sku=sku.upper()).first()
    if not variant:
        raise click.ClickException(f"No variant with SKU {sku}")
    return variant
