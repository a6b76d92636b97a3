# Overview: Idempotent seeding of default settings, base units and the sample category tree.

from __future__ import annotations

from typing import TYPE_CHECKING

from ..models import Category, Unit

if TYPE_CHECKING:
    from ..context import Services

DEFAULT_BASE_UNITS = ("pcs", "gr")

# name -> children; nested dicts describe deeper levels
SAMPLE_CATEGORIES = {
    "Fashion": {
        "Wanita": {
            "Atasan": {"Kaos": {}, "Blouse": {}},
            "Bawahan": {},
        },
        "Pria": {},
        "Anak-anak": {},
    },
    "Electronics": {},
    "Grocery": {},
}


def seed_defaults(services: "Services", *, sample_categories: bool = False) -> dict:
    """
    Ensure the default config rows and base units exist; optionally seed the
    sample category tree. Safe to run repeatedly.

    Returns counts of what was created on this call.
    """
    created = {
        "settings": services.settings.ensure_defaults(),
        "units": 0,
        "categories": 0,
    }

    session = services.units.session
    for name in DEFAULT_BASE_UNITS:
        if session.query(Unit.id).filter(Unit.name == name).first() is None:
            services.units.create(name)
            created["units"] += 1

    if sample_categories:
        created["categories"] = _seed_tree(services, SAMPLE_CATEGORIES, parent_id=None)

    services.ctx.logger.info("seed_defaults created=%s", created)
    return created


def _seed_tree(services: "Services", tree: dict, *, parent_id: int | None) -> int:
    session = services.categories.session
    count = 0
    for name, children in tree.items():
        q = session.query(Category).filter(Category.name == name)
        if parent_id is None:
            q = q.filter(Category.parent_id.is_(None))
        else:
            q = q.filter(Category.parent_id == parent_id)
        node = q.first()
        if node is None:
            node = services.categories.create_category(parent_id, name)
            count += 1
        count += _seed_tree(services, children, parent_id=node.id)
    return count
