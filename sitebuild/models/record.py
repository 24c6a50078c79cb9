from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class LocaleBucket(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class NormalizedRecord(BaseModel):
    """A single-locale content record after locale resolution."""

    model_config = ConfigDict(frozen=True)

    entry_id: str
    created_at: datetime
    title: str
    slug: str
    category: str
    body: Any = None  # opaque rich-text document
    summary: str = ""
    date: Optional[str] = None
    image_url: str = ""
    image_alt: str = ""
    locale: LocaleBucket
    lang: str


class ValidRecord(NormalizedRecord):
    """A record that passed the content validator."""


class NavLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    title: str
    url: str


class DetailPage(BaseModel):
    """Everything the page writer needs for one detail page.

    ``prev`` points at the next older record of the same category and ``next``
    at the next newer one; ``None`` marks the ends of the category.
    """

    model_config = ConfigDict(frozen=True)

    record: ValidRecord
    url: str
    prev: Optional[NavLink] = None
    next: Optional[NavLink] = None


def recency_key(record: NormalizedRecord):
    """Sort key for newest-first ordering; ``entry_id`` breaks creation-time ties."""
    return (record.created_at, record.entry_id)
