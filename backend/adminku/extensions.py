# Overview: Flask extension instances for the inventory database and schema upgrades.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Bound to exactly one app by create_app(); services never import this directly,
# they receive it through InventoryContext.
db = SQLAlchemy()
migrate = Migrate()
