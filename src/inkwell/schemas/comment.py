"""Comment-related Pydantic schemas."""

from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    """Schema for creating a comment or a reply."""

    post_id: int
    content: str = Field(..., min_length=1, max_length=2000)
    parent_id: int | None = Field(None, description="Comment being replied to, if any.")


class CommentUpdate(BaseModel):
    """Schema for editing a comment's text."""

    content: str = Field(..., min_length=1, max_length=2000)
