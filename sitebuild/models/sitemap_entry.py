from typing import Optional

from pydantic import BaseModel


class SitemapEntry(BaseModel):
    """One ``<url>`` element of a sitemap.  ``loc`` is the uniqueness key."""

    loc: str
    lastmod: Optional[str] = None
    priority: Optional[float] = None
    changefreq: Optional[str] = None
