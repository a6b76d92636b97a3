# Overview: Explicit per-process context handed to every inventory service.

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

from .services.brand_service import BrandService
from .services.category_service import CategoryService
from .services.concurrency import LockRegistry
from .services.product_service import ProductCatalog
from .services.settings_service import SettingsService
from .services.stock_service import StockLedger
from .services.unit_service import UnitService


class InventoryContext:
    """
    Everything a service needs from the outside world.

    Built once by create_app() and passed to each service constructor. The
    database session is the Flask-SQLAlchemy scoped session, so every thread
    that pushes its own app context gets its own session; the lock registry
    is shared by all of them.
    """

    def __init__(self, app: Flask, database: SQLAlchemy):
        self.app = app
        self.db = database
        self.locks = LockRegistry()

    @property
    def session(self):
        return self.db.session

    @property
    def logger(self):
        return self.app.logger

    @property
    def config(self):
        return self.app.config

    def shutdown(self) -> None:
        """Release the session and pooled connections at process shutdown."""
        with self.app.app_context():
            self.db.session.remove()
            self.db.engine.dispose()
        self.logger.info("inventory context shut down")


@dataclass
class Services:
    """The wired set of inventory services for one InventoryContext."""
    ctx: InventoryContext
    settings: SettingsService
    units: UnitService
    categories: CategoryService
    brands: BrandService
    ledger: StockLedger
    catalog: ProductCatalog


def build_services(ctx: InventoryContext) -> Services:
    settings = SettingsService(ctx)
    units = UnitService(ctx)
    categories = CategoryService(ctx, settings)
    brands = BrandService(ctx)
    ledger = StockLedger(ctx, units)
    catalog = ProductCatalog(
        ctx,
        units=units,
        categories=categories,
        brands=brands,
        ledger=ledger,
    )
    return Services(
        ctx=ctx,
        settings=settings,
        units=units,
        categories=categories,
        brands=brands,
        ledger=ledger,
        catalog=catalog,
    )
