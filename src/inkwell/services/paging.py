"""Offset pagination shared by the listing operations."""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from inkwell.core.settings import settings
from inkwell.schemas.common import Page

T = TypeVar("T")


def clamp(page: int | None, limit: int | None) -> tuple[int, int]:
    """Normalise ``page`` to >= 1 and ``limit`` to ``1..MAX_PAGE_SIZE``."""
    page = max(page or 1, 1)
    limit = limit or settings.default_page_size
    limit = min(max(limit, 1), settings.max_page_size)
    return page, limit


def paginate(
    session: Session,
    stmt: Select[Any],
    page: int | None = None,
    limit: int | None = None,
) -> Page[Any]:
    """Run ``stmt`` for one page of scalar results and count the full result."""
    page, limit = clamp(page, limit)
    total = session.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ) or 0
    items = list(session.scalars(stmt.offset((page - 1) * limit).limit(limit)).unique())
    return Page(items=items, total=total, page=page, limit=limit)
