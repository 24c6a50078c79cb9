from typing import Optional

from pydantic import BaseModel


class IndexEntry(BaseModel):
    """Listing-page projection of a published record (one row of data.json)."""

    title: str
    summary: str
    date: Optional[str] = None
    url: str
    img: str
    alt: str
    category: str
    lang: str
