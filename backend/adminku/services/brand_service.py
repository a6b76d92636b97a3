# Overview: Service-layer operations for product brands.

from __future__ import annotations

from sqlalchemy import func

from ..models import Brand, Product
from ..validation import ConflictError, NotFoundError, validate_name
from .base import BaseService
from .concurrency import store_operation
from .unit_service import DuplicateNameError


class BrandInUseError(ConflictError):
    pass


class BrandService(BaseService):

    def _ensure_free(self, name: str, *, exclude_id: int | None = None) -> None:
        q = self.session.query(Brand.id).filter(Brand.name == name)
        if exclude_id is not None:
            q = q.filter(Brand.id != exclude_id)
        if q.first() is not None:
            raise DuplicateNameError(f"brand {name!r} already exists")

    @store_operation
    def get(self, brand_id: int) -> Brand:
        brand = self.session.get(Brand, brand_id)
        if brand is None:
            raise NotFoundError("brand", brand_id)
        return brand

    @store_operation
    def list_brands(self, query: str | None = None) -> list[Brand]:
        q = self.session.query(Brand)
        needle = (query or "").strip().lower()
        if needle:
            q = q.filter(func.lower(Brand.name).contains(needle, autoescape=True))
        return q.order_by(Brand.name.asc()).all()

    @store_operation
    def create(self, name: str) -> Brand:
        name = validate_name(name)
        self._ensure_free(name)
        brand = Brand(name=name)
        self.session.add(brand)
        self.session.commit()
        self.log.info("brand created id=%s name=%s", brand.id, name)
        return brand

    @store_operation
    def rename(self, brand_id: int, name: str) -> Brand:
        name = validate_name(name)
        brand = self.get(brand_id)
        self._ensure_free(name, exclude_id=brand.id)
        brand.name = name
        self.session.commit()
        self.log.info("brand renamed id=%s name=%s", brand.id, name)
        return brand

    @store_operation
    def delete(self, brand_id: int) -> None:
        brand = self.get(brand_id)
        used_by = (
            self.session.query(func.count(Product.id))
            .filter(Product.brand_id == brand.id)
            .scalar()
        )
        if used_by:
            raise BrandInUseError(f"brand {brand.name!r} is used by {used_by} products")
        self.session.delete(brand)
        self.session.commit()
        self.log.info("brand deleted id=%s", brand_id)
