"""Category and tag Pydantic schemas."""

from pydantic import BaseModel, Field, field_validator

from inkwell.models.tag import DEFAULT_TAG_COLOR
from inkwell.utils.text import is_hex_color


class CategoryCreate(BaseModel):
    """Schema for creating a category."""

    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field("", max_length=500)
    parent_id: int | None = None
    order: int = 0


class CategoryUpdate(BaseModel):
    """Partial update; pass ``parent_id=None`` explicitly to detach from a parent."""

    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=500)
    parent_id: int | None = None
    order: int | None = None


class TagCreate(BaseModel):
    """Schema for creating a tag."""

    name: str = Field(..., min_length=1, max_length=30)
    description: str | None = Field(None, max_length=200)
    color: str = DEFAULT_TAG_COLOR

    @field_validator("color")
    @classmethod
    def _check_color(cls, value: str) -> str:
        if not is_hex_color(value):
            raise ValueError("color must be a hex colour code such as #6b7280")
        return value


class TagUpdate(BaseModel):
    """Partial update of a tag."""

    name: str | None = Field(None, min_length=1, max_length=30)
    description: str | None = Field(None, max_length=200)
    color: str | None = None

    @field_validator("color")
    @classmethod
    def _check_color(cls, value: str | None) -> str | None:
        if value is not None and not is_hex_color(value):
            raise ValueError("color must be a hex colour code such as #6b7280")
        return value
