from typing import Dict, List

from pydantic import BaseModel, Field


class BuildReport(BaseModel):
    """Summary of one completed build."""

    published: Dict[str, int] = Field(default_factory=dict)  # lang -> records
    dropped: Dict[str, int] = Field(default_factory=dict)  # rejection reason -> records
    pages_written: int = 0
    index_entries: int = 0
    sitemap_entries: int = 0
    new_sitemap_urls: List[str] = Field(default_factory=list)

    @property
    def dropped_total(self) -> int:
        return sum(self.dropped.values())
