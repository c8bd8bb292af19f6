# src/inkwell/schemas/post.py
"""Post-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from inkwell.models.post import PostStatus


class PostCreate(BaseModel):
    """Schema for creating a new post."""

    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1)
    category_id: int
    tag_ids: list[int] = Field(default_factory=list)
    summary: str | None = Field(None, max_length=500)
    featured_image: str | None = None
    status: PostStatus = PostStatus.DRAFT
    publish_date: datetime | None = Field(
        None,
        description="Required and strictly in the future for scheduled posts; ignored otherwise.",
    )
    slug: str | None = Field(None, max_length=160)


class PostUpdate(BaseModel):
    """Partial update; only fields present in ``model_fields_set`` are applied."""

    title: str | None = Field(None, min_length=1, max_length=100)
    content: str | None = Field(None, min_length=1)
    summary: str | None = Field(None, max_length=500)
    featured_image: str | None = None
    category_id: int | None = None
    tag_ids: list[int] | None = None
    status: PostStatus | None = None
    publish_date: datetime | None = None
    slug: str | None = Field(None, max_length=160)


class PostFilters(BaseModel):
    """Search filters for published posts."""

    search: str | None = None
    category: int | str | None = Field(None, description="Category id or slug.")
    tag: int | str | None = Field(None, description="Tag id or slug.")
    author_id: int | None = None
    status: PostStatus = PostStatus.PUBLISHED
    from_date: datetime | None = None
    to_date: datetime | None = None
