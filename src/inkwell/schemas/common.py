"""Shared schemas: the calling actor and paged result containers."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Actor(BaseModel):
    """Already-authenticated identity supplied by the request layer."""

    id: int = Field(..., description="User id of the caller.")
    is_admin: bool = Field(False, description="Whether the caller holds the admin role.")

    model_config = ConfigDict(frozen=True)


@dataclass
class Page(Generic[T]):
    """One page of results plus the totals needed to render pagination."""

    items: list[T]
    total: int
    page: int
    limit: int
    meta: dict[str, object] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        """Return the number of pages needed for ``total`` items."""
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)
