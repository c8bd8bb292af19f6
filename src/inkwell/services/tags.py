"""Tag catalogue: CRUD, lookup and popularity listings."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Literal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from inkwell.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from inkwell.db.session import transaction
from inkwell.db.time import Clock, utcnow
from inkwell.models import PostTag, Tag
from inkwell.models.tag import DEFAULT_TAG_COLOR
from inkwell.schemas.category import TagCreate, TagUpdate
from inkwell.schemas.common import Page
from inkwell.services.paging import paginate
from inkwell.utils.text import slugify

logger = logging.getLogger(__name__)

TagSort = Literal["name", "popular", "recent"]

_ORDERINGS = {
    "name": (Tag.name.asc(),),
    "popular": (Tag.post_count.desc(), Tag.name.asc()),
    "recent": (Tag.created_at.desc(), Tag.id.desc()),
}


class TagCatalog:
    """Service owning tag rows; post counts are maintained by ``CounterLedger``."""

    def __init__(self, session: Session, clock: Clock = utcnow) -> None:
        self.session = session
        self.clock = clock

    def get(self, tag_id: int) -> Tag:
        tag = self.session.get(Tag, tag_id)
        if tag is None:
            raise NotFoundError("Tag", tag_id)
        return tag

    def detail(self, id_or_slug: int | str) -> Tag:
        """Look a tag up by numeric id or by slug.

        Strings are matched as slugs first; an all-digit string that matches no
        slug is then tried as an id.
        """
        if isinstance(id_or_slug, int):
            return self.get(id_or_slug)
        tag = self.session.scalar(select(Tag).where(Tag.slug == id_or_slug))
        if tag is None and id_or_slug.isdigit():
            tag = self.session.get(Tag, int(id_or_slug))
        if tag is None:
            raise NotFoundError("Tag", id_or_slug)
        return tag

    def create(self, data: TagCreate) -> Tag:
        with transaction(self.session):
            slug = self._claim_name(data.name)
            tag = Tag(
                name=data.name,
                slug=slug,
                description=data.description,
                color=data.color,
                created_at=self.clock(),
            )
            self.session.add(tag)
        logger.info("Tag created: %s (id=%s)", tag.name, tag.id)
        return tag

    def update(self, tag_id: int, patch: TagUpdate) -> Tag:
        fields = patch.model_fields_set
        with transaction(self.session):
            tag = self.get(tag_id)
            if "name" in fields and patch.name and patch.name != tag.name:
                tag.slug = self._claim_name(patch.name, exclude_id=tag.id)
                tag.name = patch.name
            if "description" in fields:
                tag.description = patch.description
            if "color" in fields and patch.color is not None:
                tag.color = patch.color
        logger.info("Tag %s updated", tag_id)
        return tag

    def delete(self, tag_id: int) -> None:
        """Delete a tag that no post references."""
        with transaction(self.session):
            tag = self.get(tag_id)
            used = self.session.scalar(
                select(func.count()).select_from(PostTag).where(PostTag.tag_id == tag_id)
            )
            if used:
                raise ConflictError(f"Tag is used by {used} post(s) and cannot be deleted")
            self.session.delete(tag)
        logger.info("Tag %s deleted", tag_id)

    def list(self, sort: TagSort = "name", page: int = 1, limit: int | None = None) -> Page[Tag]:
        if sort not in _ORDERINGS:
            raise InvalidArgumentError(f"Unknown tag sort '{sort}'")
        return paginate(self.session, select(Tag).order_by(*_ORDERINGS[sort]), page, limit)

    def search(self, query: str, limit: int = 10) -> list[Tag]:
        pattern = f"%{query.strip()}%"
        return list(
            self.session.scalars(
                select(Tag)
                .where(or_(Tag.name.ilike(pattern), Tag.description.ilike(pattern)))
                .order_by(Tag.post_count.desc(), Tag.name)
                .limit(limit)
            )
        )

    def popular(self, limit: int = 10) -> list[Tag]:
        """Return the most used tags; unused tags are left out."""
        return list(
            self.session.scalars(
                select(Tag)
                .where(Tag.post_count > 0)
                .order_by(*_ORDERINGS["popular"])
                .limit(limit)
            )
        )

    def get_or_create(self, names: Iterable[str]) -> list[Tag]:
        """Resolve names to tags, creating the missing ones.

        Names are trimmed and de-duplicated by slug; blank names are skipped.
        The result keeps the order of first appearance.
        """
        wanted: dict[str, str] = {}
        for raw in names:
            name = raw.strip()
            slug = slugify(name)
            if name and slug and slug not in wanted:
                wanted[slug] = name
        if not wanted:
            return []
        with transaction(self.session):
            existing = {
                tag.slug: tag
                for tag in self.session.scalars(select(Tag).where(Tag.slug.in_(list(wanted))))
            }
            tags = []
            for slug, name in wanted.items():
                tag = existing.get(slug)
                if tag is None:
                    tag = Tag(
                        name=name[:30],
                        slug=slug,
                        color=DEFAULT_TAG_COLOR,
                        created_at=self.clock(),
                    )
                    self.session.add(tag)
                    logger.info("Tag created on demand: %s", name)
                tags.append(tag)
        return tags

    def _claim_name(self, name: str, exclude_id: int | None = None) -> str:
        slug = slugify(name)
        if not slug:
            raise InvalidArgumentError("Tag name must contain a letter or digit")
        clash = select(Tag.id).where(or_(Tag.name == name, Tag.slug == slug))
        if exclude_id is not None:
            clash = clash.where(Tag.id != exclude_id)
        if self.session.scalar(clash) is not None:
            raise ConflictError(f"Tag '{name}' already exists")
        return slug
