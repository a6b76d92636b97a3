# Overview: Service-layer operations for the bounded-depth category tree.

from __future__ import annotations

from typing import Iterator

from sqlalchemy import func

from ..models import Category, Product
from ..validation import ConflictError, NotFoundError, ValidationError, validate_name
from .base import BaseService
from .concurrency import CATEGORY_TREE_LOCK, store_operation
from .settings_service import SettingsService
"""
Category Tree Invariants (authoritative)

- Roots have parent_id NULL and level 0; every other node has
  level == parent.level + 1.
- level <= max_category_depth (config table, default 5) for every node.
- Sibling names are unique (exact match); roots are siblings of each other.
- has_children == (number of children > 0), kept eagerly on create, delete
  and move of a child.
- Ancestor walks are iterative and bounded by max_category_depth + 1 steps,
  so a corrupted parent chain cannot loop forever.
- Structural mutations (create, delete, move, rename) are serialized by one
  process-wide tree lock.
"""

MAX_CATEGORY_NAME_LENGTH = 100


class DuplicateSiblingNameError(ConflictError):
    pass


class MaxDepthExceededError(ValidationError):
    pass


class CyclicMoveError(ValidationError):
    pass


class HasChildrenError(ConflictError):
    pass


class HasProductsError(ConflictError):
    pass


class CategoryService(BaseService):

    def __init__(self, ctx, settings: SettingsService):
        super().__init__(ctx)
        self.settings = settings

    def max_depth(self) -> int:
        return self.settings.max_category_depth()

    def _sibling_query(self, parent_id: int | None, name: str):
        q = self.session.query(Category).filter(Category.name == name)
        if parent_id is None:
            return q.filter(Category.parent_id.is_(None))
        return q.filter(Category.parent_id == parent_id)

    def _ensure_unique_sibling(self, parent_id: int | None, name: str, *, exclude_id: int | None = None) -> None:
        q = self._sibling_query(parent_id, name)
        if exclude_id is not None:
            q = q.filter(Category.id != exclude_id)
        if q.first() is not None:
            where = "at the root" if parent_id is None else f"under category {parent_id}"
            raise DuplicateSiblingNameError(f"category {name!r} already exists {where}")

    def _refresh_has_children(self, category: Category | None) -> None:
        if category is None:
            return
        category.has_children = self._count_children(category.id) > 0

    def _count_children(self, category_id: int) -> int:
        return int(
            self.session.query(func.count(Category.id))
            .filter(Category.parent_id == category_id)
            .scalar()
            or 0
        )

    # ---- reads ----

    @store_operation
    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("category", category_id)
        return category

    @store_operation
    def roots(self) -> list[Category]:
        return (
            self.session.query(Category)
            .filter(Category.parent_id.is_(None))
            .order_by(Category.name.asc())
            .all()
        )

    @store_operation
    def children(self, parent_id: int | None) -> list[Category]:
        """Direct children in name order; None lists the roots."""
        if parent_id is None:
            return self.roots()
        self.get(parent_id)
        return (
            self.session.query(Category)
            .filter(Category.parent_id == parent_id)
            .order_by(Category.name.asc())
            .all()
        )

    @store_operation
    def count_children(self, category_id: int) -> int:
        self.get(category_id)
        return self._count_children(category_id)

    @store_operation
    def search(self, query: str, limit: int | None = None) -> list[Category]:
        """
        Case-insensitive substring match on name.

        Ordered by level, then name; at most `limit` rows (CATEGORY_SEARCH_LIMIT
        when omitted).
        """
        if limit is None:
            limit = int(self.ctx.config.get("CATEGORY_SEARCH_LIMIT", 20))
        if limit <= 0:
            return []
        needle = (query or "").strip().lower()
        q = self.session.query(Category)
        if needle:
            q = q.filter(func.lower(Category.name).contains(needle, autoescape=True))
        return q.order_by(Category.level.asc(), Category.name.asc()).limit(limit).all()

    @store_operation
    def path_to_root(self, category_id: int) -> list[Category]:
        """Ancestors of the node followed by the node itself, root first."""
        node = self.get(category_id)
        path = [node]
        bound = max(self.max_depth(), node.level) + 1
        while node.parent_id is not None:
            if len(path) > bound:
                raise ValidationError(f"category {category_id} has a parent chain deeper than {bound}")
            node = self.session.get(Category, node.parent_id)
            if node is None:
                raise NotFoundError("category", path[-1].parent_id)
            path.append(node)
        path.reverse()
        return path

    def breadcrumb(self, category_id: int, separator: str = " > ") -> str:
        return separator.join(c.name for c in self.path_to_root(category_id))

    def subtree(self, category_id: int) -> Iterator[Category]:
        """
        Depth-first (pre-order) iterator over every descendant of the node.

        The node itself is not yielded. Children are visited in name order and
        fetched one level at a time as the iterator advances.
        """
        self.get(category_id)
        return self._walk(category_id)

    def _walk(self, category_id: int) -> Iterator[Category]:
        stack = [iter(self._child_rows(category_id))]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                continue
            yield child
            stack.append(iter(self._child_rows(child.id)))

    def _child_rows(self, parent_id: int) -> list[Category]:
        return (
            self.session.query(Category)
            .filter(Category.parent_id == parent_id)
            .order_by(Category.name.asc())
            .all()
        )

    def can_have_subcategory(self, category_id: int) -> bool:
        return self.get(category_id).level < self.max_depth()

    # ---- mutations ----

    @store_operation
    def create_category(self, parent_id: int | None, name: str, description: str | None = None) -> Category:
        name = validate_name(name, max_length=MAX_CATEGORY_NAME_LENGTH)

        with self.ctx.locks.hold(CATEGORY_TREE_LOCK):
            parent = None
            level = 0
            if parent_id is not None:
                parent = self.get(parent_id)
                level = parent.level + 1

            max_depth = self.max_depth()
            if level > max_depth:
                raise MaxDepthExceededError(
                    f"category {name!r} would sit at level {level}, max is {max_depth}"
                )

            self._ensure_unique_sibling(parent_id, name)

            category = Category(
                parent_id=parent_id,
                level=level,
                name=name,
                description=description.strip() if isinstance(description, str) else description,
                has_children=False,
            )
            self.session.add(category)
            if parent is not None and not parent.has_children:
                parent.has_children = True
            self.session.commit()

        self.log.info("category created id=%s name=%s parent_id=%s level=%s", category.id, name, parent_id, level)
        return category

    @store_operation
    def rename_category(self, category_id: int, name: str | None = None, description: str | None = None) -> Category:
        with self.ctx.locks.hold(CATEGORY_TREE_LOCK):
            category = self.get(category_id)
            if name is not None:
                name = validate_name(name, max_length=MAX_CATEGORY_NAME_LENGTH)
                if name != category.name:
                    self._ensure_unique_sibling(category.parent_id, name, exclude_id=category.id)
                    category.name = name
            if description is not None:
                category.description = description.strip() or None
            self.session.commit()

        self.log.info("category renamed id=%s name=%s", category.id, category.name)
        return category

    @store_operation
    def delete_category(self, category_id: int) -> None:
        with self.ctx.locks.hold(CATEGORY_TREE_LOCK):
            category = self.get(category_id)

            if self._count_children(category.id) > 0:
                raise HasChildrenError(f"category {category.name!r} has subcategories")

            in_use = self.session.query(Product.id).filter(Product.category_id == category.id).first()
            if in_use is not None:
                raise HasProductsError(f"category {category.name!r} is used by products")

            parent_id = category.parent_id
            self.session.delete(category)
            self.session.flush()

            if parent_id is not None:
                self._refresh_has_children(self.session.get(Category, parent_id))
            self.session.commit()

        self.log.info("category deleted id=%s parent_id=%s", category_id, parent_id)

    @store_operation
    def move_category(self, category_id: int, new_parent_id: int | None) -> Category:
        """
        Re-parent a node together with its whole subtree.

        Every descendant's level shifts by the same delta as the node. The
        move is rejected before any write if it would create a cycle, push a
        descendant past the max depth, or collide with a sibling name.
        """
        with self.ctx.locks.hold(CATEGORY_TREE_LOCK):
            category = self.get(category_id)
            old_parent_id = category.parent_id

            if new_parent_id == old_parent_id:
                return category

            new_parent = None
            new_level = 0
            if new_parent_id is not None:
                if new_parent_id == category.id:
                    raise CyclicMoveError("a category cannot be its own parent")
                new_parent = self.get(new_parent_id)
                if any(a.id == category.id for a in self.path_to_root(new_parent.id)):
                    raise CyclicMoveError(
                        f"category {new_parent_id} is a descendant of {category_id}"
                    )
                new_level = new_parent.level + 1

            descendants = list(self._walk(category.id))
            delta = new_level - category.level
            deepest = max([category.level] + [d.level for d in descendants]) + delta
            max_depth = self.max_depth()
            if deepest > max_depth:
                raise MaxDepthExceededError(
                    f"moving category {category_id} would place a node at level {deepest}, max is {max_depth}"
                )

            self._ensure_unique_sibling(new_parent_id, category.name, exclude_id=category.id)

            category.parent_id = new_parent_id
            category.level = new_level
            for node in descendants:
                node.level = node.level + delta
            self.session.flush()

            if old_parent_id is not None:
                self._refresh_has_children(self.session.get(Category, old_parent_id))
            if new_parent is not None:
                new_parent.has_children = True
            self.session.commit()

        self.log.info(
            "category moved id=%s from=%s to=%s delta=%s descendants=%s",
            category_id, old_parent_id, new_parent_id, delta, len(descendants),
        )
        return category
