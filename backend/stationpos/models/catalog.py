from __future__ import annotations

from decimal import Decimal

from ..extensions import db


PRODUCT_TYPES = ("quantity", "weight", "volume", "fuel")
PRICING_MODES = ("fixed", "perUnit", "dynamic", "fuel")
PRODUCT_UNITS = ("unit", "kg", "g", "L", "gallon")
FUEL_DISPLAY_UNITS = ("L", "gallon")
STOCK_MOVEMENT_REASONS = ("sale", "restock", "adjustment")

# Money and quantity precision. Quantities carry 3 decimals so metered fuel
# and weighed goods fit in the same column as discrete units.
MONEY = db.Numeric(12, 2)
QUANTITY = db.Numeric(14, 3)


def as_number(value: Decimal | None) -> float | None:
    """JSON-friendly rendering of Numeric columns."""
    if value is None:
        return None
    return float(value)


class Product(db.Model):
    """
    Product master data for the catalog.

    PRICING:
    - type decides the quantity semantics (discrete units, weight, volume,
      or metered fuel)
    - pricing_mode decides how the unit price is resolved at checkout
    - fuel products are sold by amount paid; quantity is derived from
      fuel_price_per_unit and stock is never decremented

    INVENTORY:
    - inventory_current is the live stock counter; it may never go negative
      (CHECK constraint + conditional decrement at checkout)
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("inventory_current >= 0", name="ck_products_inventory_non_negative"),
        db.Index("ix_products_store_name", "store_id", "name"),
        db.Index("ix_products_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, unique=True)

    type = db.Column(db.String(16), nullable=False, default="quantity")
    unit = db.Column(db.String(16), nullable=True)

    pricing_mode = db.Column(db.String(16), nullable=False, default="fixed")
    base_price = db.Column(MONEY, nullable=False, default=Decimal("0"))
    buy_price = db.Column(MONEY, nullable=True)
    fuel_price_per_unit = db.Column(MONEY, nullable=True)
    fuel_display_unit = db.Column(db.String(16), nullable=True)

    inventory_current = db.Column(QUANTITY, nullable=False, default=Decimal("0"))
    min_stock = db.Column(QUANTITY, nullable=False, default=Decimal("5"))

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        order_by="ProductVariant.position",
        cascade="all, delete-orphan",
        lazy="select",
    )
    pricing_rules = db.relationship(
        "PricingRule",
        back_populates="product",
        order_by="PricingRule.position",
        cascade="all, delete-orphan",
        lazy="select",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_fuel(self) -> bool:
        return self.type == "fuel"

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} type={self.type} store_id={self.store_id}>"


class ProductVariant(db.Model):
    """Named price adjustment selected at checkout (unit price = base + offset)."""
    __tablename__ = "product_variants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(120), nullable=False)
    price_offset = db.Column(MONEY, nullable=False, default=Decimal("0"))

    product = db.relationship("Product", back_populates="variants")


class PricingRule(db.Model):
    """
    Tiered pricing formula for dynamic-mode products.

    Only the first rule (lowest position) is evaluated. The formula sees
    basePrice, quantity and weight.
    """
    __tablename__ = "pricing_rules"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(120), nullable=False)
    formula = db.Column(db.String(512), nullable=False)

    product = db.relationship("Product", back_populates="pricing_rules")


class StockMovement(db.Model):
    """
    Append-only stock log. Checkout writes one 'sale' row per decremented
    product, in the same transaction as the order.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    change = db.Column(QUANTITY, nullable=False)
    new_stock = db.Column(QUANTITY, nullable=False)
    reason = db.Column(db.String(16), nullable=False, default="sale")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
