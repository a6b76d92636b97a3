# backend/adminku/services/product_service.py
"""
Product Catalog

Owns product rows and their image path records. Categories, units and brands
are referenced by id and must exist when a product points at them.

STOCK: the catalog never writes Product.stock. Stock changes go through
adjust_stock()/reset_stock(), which append to the StockLedger; the ledger
re-syncs the cache.
"""
from __future__ import annotations

import re

from sqlalchemy import func, or_

from ..models import (
    Product,
    ProductImage,
    StockTransaction,
    PRODUCT_STATUS_ACTIVE,
    PRODUCT_STATUSES,
    TX_ADD,
    TX_ADJUST,
    TX_REMOVE,
)
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    is_strict_int,
    validate_name,
    validate_payload,
)
from .base import BaseService
from .brand_service import BrandService
from .category_service import CategoryService
from .concurrency import BARCODE_LOCK, product_lock_key, store_operation
from .stock_service import InvalidQuantityError, StockLedger, StockLevel
from .unit_service import IncompatibleUnitsError, UnitService, base_name

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "category_id",
        "brand_id",
        "unit_id",
        "barcode",
        "buy_price_cents",
        "sell_price_cents",
        "status",
    },
    required_on_create={"name", "category_id", "unit_id"},
)

MAX_PRODUCT_NAME_LENGTH = 255


class DuplicateBarcodeError(ConflictError):
    pass


class InsufficientStockError(ConflictError):
    def __init__(self, product_id: int, requested_in_base: int, available_in_base: int):
        super().__init__(
            f"product {product_id} has {available_in_base} base units in stock, "
            f"{requested_in_base} requested"
        )
        self.product_id = product_id
        self.requested_in_base = requested_in_base
        self.available_in_base = available_in_base


class ProductCatalog(BaseService):

    def __init__(
        self,
        ctx,
        *,
        units: UnitService,
        categories: CategoryService,
        brands: BrandService,
        ledger: StockLedger,
    ):
        super().__init__(ctx)
        self.units = units
        self.categories = categories
        self.brands = brands
        self.ledger = ledger

    # ---- barcodes ----

    def _barcode_prefix(self) -> str:
        return self.ctx.config.get("BARCODE_PREFIX", "BE-")

    def _next_barcode(self) -> str:
        """
        Next generated barcode: prefix + zero-padded (max numeric suffix + 1).

        Only barcodes of the exact form prefix + digits count towards the
        sequence; hand-entered barcodes are ignored. Caller holds BARCODE_LOCK.
        """
        prefix = self._barcode_prefix()
        digits = int(self.ctx.config.get("BARCODE_DIGITS", 8))
        pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

        candidates = (
            self.session.query(Product.barcode)
            .filter(Product.barcode.startswith(prefix, autoescape=True))
            .all()
        )
        highest = 0
        for (barcode,) in candidates:
            match = pattern.match(barcode or "")
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{prefix}{highest + 1:0{digits}d}"

    def _ensure_barcode_free(self, barcode: str, *, exclude_id: int | None = None) -> None:
        q = self.session.query(Product.id).filter(Product.barcode == barcode)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first() is not None:
            raise DuplicateBarcodeError(f"barcode {barcode!r} already exists")

    # ---- reads ----

    @store_operation
    def get(self, product_id: int) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        return product

    @store_operation
    def get_by_barcode(self, barcode: str) -> Product:
        product = self.session.query(Product).filter(Product.barcode == (barcode or "").strip()).first()
        if product is None:
            raise NotFoundError("product", barcode)
        return product

    @store_operation
    def search(self, query: str, limit: int = 20) -> list[Product]:
        """Case-insensitive match on name or barcode, ordered by name."""
        needle = (query or "").strip().lower()
        if not needle or limit <= 0:
            return []
        return (
            self.session.query(Product)
            .filter(
                or_(
                    func.lower(Product.name).contains(needle, autoescape=True),
                    func.lower(Product.barcode).contains(needle, autoescape=True),
                )
            )
            .order_by(Product.name.asc(), Product.id.asc())
            .limit(limit)
            .all()
        )

    @store_operation
    def list_products(
        self,
        status: str | None = None,
        category_id: int | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> dict:
        """
        Product listing with optional filters and pagination.

        Args:
            status: Only products in this status.
            category_id: Only products directly in this category.
            page: Page number (1-indexed). If None, returns all items.
            per_page: Items per page (default 20, max 100)

        Returns:
            Dict with 'items', 'count', and pagination metadata if paginated.
        """
        base_query = self.session.query(Product)
        if status is not None:
            if status not in PRODUCT_STATUSES:
                raise ValidationError(f"invalid status {status!r}")
            base_query = base_query.filter(Product.status == status)
        if category_id is not None:
            base_query = base_query.filter(Product.category_id == category_id)
        base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

        if page is None:
            products = base_query.all()
            return {
                "items": [p.to_dict() for p in products],
                "count": len(products),
            }

        per_page = min(per_page or 20, 100)
        page = max(page, 1)

        total = base_query.count()
        total_pages = (total + per_page - 1) // per_page if total > 0 else 1

        products = base_query.offset((page - 1) * per_page).limit(per_page).all()

        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    # ---- mutations ----

    def _check_references(self, patch: dict) -> None:
        if "category_id" in patch:
            self.categories.get(patch["category_id"])
        if "unit_id" in patch:
            self.units.get(patch["unit_id"])
        if patch.get("brand_id") is not None:
            self.brands.get(patch["brand_id"])
        if "status" in patch and patch["status"] not in PRODUCT_STATUSES:
            raise ValidationError(f"invalid status {patch['status']!r}")

    @store_operation
    def create(
        self,
        name: str,
        category_id: int,
        unit_id: int,
        brand_id: int | None = None,
        barcode: str | None = None,
        *,
        description: str | None = None,
        buy_price_cents: int | None = None,
        sell_price_cents: int | None = None,
        status: str = PRODUCT_STATUS_ACTIVE,
    ) -> Product:
        payload = {
            "name": validate_name(name, max_length=MAX_PRODUCT_NAME_LENGTH),
            "category_id": category_id,
            "unit_id": unit_id,
            "brand_id": brand_id,
            "barcode": barcode,
            "description": description,
            "buy_price_cents": buy_price_cents,
            "sell_price_cents": sell_price_cents,
            "status": status,
        }
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        self._check_references(patch)
        if patch.get("barcode") == "":
            patch["barcode"] = None

        with self.ctx.locks.hold(BARCODE_LOCK):
            if patch["barcode"] is None:
                patch["barcode"] = self._next_barcode()
            else:
                self._ensure_barcode_free(patch["barcode"])

            product = Product(stock=0, **patch)
            self.session.add(product)
            self.session.commit()

        self.log.info("product created id=%s barcode=%s name=%s", product.id, product.barcode, product.name)
        return product

    @store_operation
    def update(self, product_id: int, patch: dict) -> Product:
        """
        Apply a validated patch to a product.

        The catalog unit may change only while the product has no ledger
        rows, since existing rows are interpreted relative to it.
        """
        patch = validate_payload(model=Product, payload=patch, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        if "name" in patch:
            patch["name"] = validate_name(patch["name"], max_length=MAX_PRODUCT_NAME_LENGTH)
        self._check_references(patch)

        with self.ctx.locks.hold(product_lock_key(product_id)):
            product = self.get(product_id)

            if "unit_id" in patch and patch["unit_id"] != product.unit_id:
                if self.ledger.count_for_product(product.id) > 0:
                    raise ConflictError("catalog unit cannot change once stock has been recorded")

            with self.ctx.locks.hold(BARCODE_LOCK):
                if "barcode" in patch and patch["barcode"] != product.barcode:
                    if not patch["barcode"]:
                        raise ValidationError("barcode cannot be cleared")
                    self._ensure_barcode_free(patch["barcode"], exclude_id=product.id)

                for key, value in patch.items():
                    setattr(product, key, value)
                self.session.commit()

        self.log.info("product updated id=%s fields=%s", product.id, ",".join(sorted(patch.keys())))
        return product

    @store_operation
    def set_status(self, product_id: int, status: str) -> Product:
        if status not in PRODUCT_STATUSES:
            raise ValidationError(f"invalid status {status!r}")
        product = self.get(product_id)
        product.status = status
        self.session.commit()
        self.log.info("product status id=%s status=%s", product.id, status)
        return product

    @store_operation
    def delete(self, product_id: int) -> None:
        """Delete a product with its ledger rows and image records in one commit."""
        with self.ctx.locks.hold(product_lock_key(product_id)):
            product = self.get(product_id)
            removed_tx = self.ledger.delete_for_product(product.id)
            removed_images = (
                self.session.query(ProductImage)
                .filter(ProductImage.product_id == product.id)
                .delete(synchronize_session=False)
            )
            self.session.delete(product)
            self.session.commit()

        self.log.info(
            "product deleted id=%s transactions=%s images=%s", product_id, removed_tx, removed_images
        )

    # ---- stock ----

    @store_operation
    def stock_level(self, product_id: int) -> StockLevel:
        return self.ledger.current_stock(product_id)

    @store_operation
    def adjust_stock(self, product_id: int, unit_id, delta: int, reason: str | None = None) -> StockTransaction:
        """
        Relative stock change: delta > 0 records ADD, delta < 0 records REMOVE.

        A removal larger than the current derived stock (compared in base
        units) raises InsufficientStockError and writes nothing.
        """
        if not is_strict_int(delta) or delta == 0:
            raise InvalidQuantityError("delta must be a non-zero integer")

        with self.ctx.locks.hold(product_lock_key(product_id)):
            product = self.get(product_id)
            unit = self.units.get(unit_id)
            catalog_unit = self.units.get(product.unit_id)
            if base_name(unit) != base_name(catalog_unit):
                raise IncompatibleUnitsError(
                    f"unit {unit.name!r} does not share a base with {catalog_unit.name!r}"
                )

            if delta < 0:
                level = self.ledger.current_stock(product.id)
                available = level.quantity * catalog_unit.conversion_factor + level.remainder_in_base
                requested = -delta * unit.conversion_factor
                if requested > available:
                    self.log.warning(
                        "stock removal rejected product_id=%s requested=%s available=%s",
                        product.id, requested, available,
                    )
                    raise InsufficientStockError(product.id, requested, available)

            tx_type = TX_ADD if delta > 0 else TX_REMOVE
            return self.ledger.record(product.id, unit.id, tx_type, abs(delta), note=reason)

    @store_operation
    def reset_stock(
        self,
        product_id: int,
        quantity: int,
        unit_id=None,
        note: str | None = None,
        occurred_at=None,
    ) -> StockTransaction:
        """Absolute stock reset: records an ADJUST in unit_id (catalog unit by default)."""
        product = self.get(product_id)
        return self.ledger.record(
            product.id,
            unit_id if unit_id is not None else product.unit_id,
            TX_ADJUST,
            quantity,
            occurred_at=occurred_at,
            note=note,
        )

    # ---- images ----

    @store_operation
    def add_image(self, product_id: int, image_path: str) -> ProductImage:
        path = validate_name(image_path, field="image_path", max_length=500)
        product = self.get(product_id)
        next_index = (
            self.session.query(func.coalesce(func.max(ProductImage.order_index), -1))
            .filter(ProductImage.product_id == product.id)
            .scalar()
        )
        image = ProductImage(product_id=product.id, image_path=path, order_index=int(next_index) + 1)
        self.session.add(image)
        self.session.commit()
        self.log.info("product image added product_id=%s path=%s", product.id, path)
        return image

    @store_operation
    def list_images(self, product_id: int) -> list[ProductImage]:
        self.get(product_id)
        return (
            self.session.query(ProductImage)
            .filter(ProductImage.product_id == product_id)
            .order_by(ProductImage.order_index.asc(), ProductImage.id.asc())
            .all()
        )

    @store_operation
    def remove_image(self, image_id: int) -> None:
        image = self.session.get(ProductImage, image_id)
        if image is None:
            raise NotFoundError("product image", image_id)
        product_id = image.product_id
        self.session.delete(image)
        self.session.commit()
        self.log.info("product image removed id=%s product_id=%s", image_id, product_id)
