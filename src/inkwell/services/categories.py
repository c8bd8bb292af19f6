"""Category hierarchy management with cycle prevention and sibling ordering."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from inkwell.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from inkwell.db.session import transaction
from inkwell.db.time import Clock, utcnow
from inkwell.models import Category, Post
from inkwell.schemas.category import CategoryCreate, CategoryUpdate
from inkwell.utils.text import slugify

logger = logging.getLogger(__name__)

# Distinguishes "leave the parent alone" from an explicit ``None`` (detach).
UNSET: Any = object()


class CategoryTree:
    """Service maintaining the acyclic parent/child relation over categories."""

    def __init__(self, session: Session, clock: Clock = utcnow) -> None:
        self.session = session
        self.clock = clock

    def get(self, category_id: int) -> Category:
        """Return a category or raise ``NotFoundError``."""
        category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    def create(self, data: CategoryCreate) -> Category:
        """Create a category under an optional existing parent."""
        with transaction(self.session):
            slug = self._claim_name(data.name)
            if data.parent_id is not None:
                self.get(data.parent_id)
            category = Category(
                name=data.name,
                slug=slug,
                description=data.description,
                parent_id=data.parent_id,
                order=data.order,
                created_at=self.clock(),
            )
            self.session.add(category)
        logger.info("Category created: %s (id=%s)", category.name, category.id)
        return category

    def update(self, category_id: int, patch: CategoryUpdate) -> Category:
        """Apply a partial update, re-validating name uniqueness and the parent link."""
        fields = patch.model_fields_set
        with transaction(self.session):
            category = self.get(category_id)
            if "name" in fields and patch.name and patch.name != category.name:
                category.slug = self._claim_name(patch.name, exclude_id=category.id)
                category.name = patch.name
            if "parent_id" in fields:
                self._assign_parent(category, patch.parent_id)
            if "description" in fields and patch.description is not None:
                category.description = patch.description
            if "order" in fields and patch.order is not None:
                category.order = patch.order
        logger.info("Category %s updated", category_id)
        return category

    def delete(self, category_id: int) -> None:
        """Delete a leaf category that no post references."""
        with transaction(self.session):
            category = self.get(category_id)
            children = self.session.scalar(
                select(func.count()).select_from(Category).where(Category.parent_id == category_id)
            )
            if children:
                raise ConflictError("Category has child categories and cannot be deleted")
            posts = self.session.scalar(
                select(func.count()).select_from(Post).where(Post.category_id == category_id)
            )
            if posts:
                raise ConflictError(f"Category is used by {posts} post(s) and cannot be deleted")
            self.session.delete(category)
        logger.info("Category %s deleted", category_id)

    def reorder(self, ids: Sequence[int], parent_id: int | None = UNSET) -> list[Category]:
        """Give each listed category the order of its position in ``ids``.

        When ``parent_id`` is passed, even as ``None``, every listed category is
        also moved under that parent in the same transaction.
        """
        with transaction(self.session):
            categories = [self.get(category_id) for category_id in ids]
            for index, category in enumerate(categories):
                category.order = index
                if parent_id is not UNSET:
                    self._assign_parent(category, parent_id)
        logger.info("Reordered %d categories", len(categories))
        return categories

    def list(self, as_tree: bool = False) -> list[Category]:
        """Return all categories sorted by order then name, or only the roots."""
        stmt = select(Category).order_by(Category.order, Category.name)
        if as_tree:
            stmt = stmt.where(Category.parent_id.is_(None)).options(
                selectinload(Category.children, recursion_depth=8)
            )
        return list(self.session.scalars(stmt))

    def detail(self, category_id: int) -> Category:
        """Return a category with its parent and children loaded."""
        category = self.session.scalar(
            select(Category)
            .where(Category.id == category_id)
            .options(selectinload(Category.children), selectinload(Category.parent))
        )
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    def ancestors(self, category_id: int) -> list[Category]:
        """Return the chain of ancestors, nearest parent first."""
        chain: list[Category] = []
        seen = {category_id}
        current = self.get(category_id)
        while current.parent_id is not None and current.parent_id not in seen:
            seen.add(current.parent_id)
            current = self.get(current.parent_id)
            chain.append(current)
        return chain

    def descendant_ids(self, category_id: int) -> list[int]:
        """Return ``category_id`` followed by the ids of all of its descendants."""
        self.get(category_id)
        ids = [category_id]
        frontier = [category_id]
        while frontier:
            children = list(
                self.session.scalars(select(Category.id).where(Category.parent_id.in_(frontier)))
            )
            children = [child for child in children if child not in ids]
            ids.extend(children)
            frontier = children
        return ids

    def search(self, query: str, limit: int = 10) -> list[Category]:
        """Case-insensitive match on name or description."""
        pattern = f"%{query.strip()}%"
        return list(
            self.session.scalars(
                select(Category)
                .where(or_(Category.name.ilike(pattern), Category.description.ilike(pattern)))
                .order_by(Category.order, Category.name)
                .limit(limit)
            )
        )

    def _claim_name(self, name: str, exclude_id: int | None = None) -> str:
        slug = slugify(name)
        if not slug:
            raise InvalidArgumentError("Category name must contain a letter or digit")
        clash = select(Category.id).where(Category.name == name)
        if exclude_id is not None:
            clash = clash.where(Category.id != exclude_id)
        if self.session.scalar(clash) is not None:
            raise ConflictError(f"Category name '{name}' already exists")
        clash = select(Category.id).where(Category.slug == slug)
        if exclude_id is not None:
            clash = clash.where(Category.id != exclude_id)
        if self.session.scalar(clash) is not None:
            raise ConflictError(f"Category slug '{slug}' already exists")
        return slug

    def _assign_parent(self, category: Category, parent_id: int | None) -> None:
        if parent_id is None:
            category.parent_id = None
            return
        if parent_id == category.id:
            raise InvalidArgumentError("A category cannot be its own parent")
        parent = self.get(parent_id)
        # Walk up from the proposed parent; meeting the category means a cycle.
        seen: set[int] = set()
        current: Category | None = parent
        while current is not None and current.id not in seen:
            if current.id == category.id:
                raise InvalidArgumentError(
                    "Cannot move a category under one of its own descendants"
                )
            seen.add(current.id)
            current = self.session.get(Category, current.parent_id) if current.parent_id else None
        category.parent_id = parent_id
