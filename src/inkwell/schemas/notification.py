"""Notification-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class SystemBroadcast(BaseModel):
    """Admin-issued system notice sent to a list of users or to everyone."""

    recipients: list[int] | Literal["all"]
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    link: str | None = None
