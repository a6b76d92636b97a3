from __future__ import annotations

from ..extensions import db
from adminku.time_utils import to_utc_z


class Unit(db.Model):
    """
    Unit of measure.

    A base unit names itself in `base_unit` and has conversion_factor 1.
    A derived unit names an existing base unit and expresses one of itself
    in that base (e.g. kg -> gr, factor 1000). Derivation is one level deep:
    a derived unit is never the base of another unit.
    """
    __tablename__ = "units"
    __table_args__ = (
        db.Index("ix_units_base_unit", "base_unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False, unique=True)
    base_unit = db.Column(db.String(50), nullable=False)
    conversion_factor = db.Column(db.Integer, nullable=False, default=1)
    is_base_unit = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Unit id={self.id} name={self.name!r} base={self.base_unit!r} factor={self.conversion_factor}>"

    @property
    def display_text(self) -> str:
        if self.is_base_unit:
            return f"{self.name} (base)"
        return f"{self.name} ({self.conversion_factor} {self.base_unit})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "base_unit": self.base_unit,
            "conversion_factor": self.conversion_factor,
            "is_base_unit": self.is_base_unit,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Category(db.Model):
    """
    Node of the category forest.

    parent_id is a plain self reference; `level` is materialized and kept
    equal to parent.level + 1 by CategoryService. `has_children` mirrors the
    child count and is updated eagerly on every structural mutation.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("parent_id", "name", name="uq_categories_parent_name"),
        db.Index("ix_categories_level_name", "level", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    level = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    has_children = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r} level={self.level} parent_id={self.parent_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "level": self.level,
            "name": self.name,
            "description": self.description,
            "has_children": self.has_children,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Brand(db.Model):
    __tablename__ = "brands"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Brand id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


PRODUCT_STATUS_ACTIVE = "ACTIVE"
PRODUCT_STATUS_INACTIVE = "INACTIVE"
PRODUCT_STATUS_DISCONTINUED = "DISCONTINUED"
PRODUCT_STATUSES = {PRODUCT_STATUS_ACTIVE, PRODUCT_STATUS_INACTIVE, PRODUCT_STATUS_DISCONTINUED}


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    Product.stock is a display cache of the ledger-derived quantity, expressed
    in the product's catalog unit and clamped at zero. StockLedger.record() is
    its only writer; the catalog exposes no setter for it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_status_name", "status", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=True, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)

    barcode = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    buy_price_cents = db.Column(db.Integer, nullable=True)
    sell_price_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PRODUCT_STATUS_ACTIVE, index=True)

    # Ledger-maintained, see class docstring
    stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    brand = db.relationship("Brand", foreign_keys=[brand_id])

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "brand_id": self.brand_id,
            "unit_id": self.unit_id,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "buy_price_cents": self.buy_price_cents,
            "sell_price_cents": self.sell_price_cents,
            "status": self.status,
            "stock": self.stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductImage(db.Model):
    """Reference to an image file kept by the external image store."""
    __tablename__ = "product_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    image_path = db.Column(db.String(500), nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "image_path": self.image_path,
            "order_index": self.order_index,
            "created_at": to_utc_z(self.created_at),
        }
