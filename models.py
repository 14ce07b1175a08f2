"""Database models for uploaded images."""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Image(SQLModel, table=True):
    """One uploaded image, keyed by its public slug."""
    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(index=True, unique=True)
    original_name: str = ""
    mime_type: str = ""
    file_size: int = 0
    width: int = 0
    height: int = 0
    downloads: int = 0
    edited: bool = False
    edit_token: str = Field(default="", description="Secret for edit/restore/delete")
    created_at: datetime = Field(default_factory=_now)
    accessed_at: datetime = Field(default_factory=_now, index=True)
