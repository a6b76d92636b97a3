# backend/adminku/__init__.py
from __future__ import annotations

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app(), which reads the database URI once
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # One inventory context per process, shared by every thread
    from .context import InventoryContext, build_services
    ctx = InventoryContext(app, db)
    app.extensions["adminku"] = build_services(ctx)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def get_services(app: Flask):
    """The Services bundle built for `app` by create_app()."""
    return app.extensions["adminku"]
