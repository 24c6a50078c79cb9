"""Index aggregation: published records to the JSON rows used by listing pages."""

import random
from typing import Iterable, List, Optional

from sitebuild.models.index_entry import IndexEntry
from sitebuild.models.record import ValidRecord
from sitebuild.services.routing import SECONDARY_PREFIX, record_path

PLACEHOLDER_POOL_SIZE = 43
PLACEHOLDER_PATTERN = "/imgs/article_imgs/{number:02d}.png"


class PlaceholderPicker:
    """Chooses a numbered local placeholder image for records without one.

    The choice is cosmetic, so it is random by default; pass *seed* to make it
    reproducible.
    """

    def __init__(
        self,
        pool_size: int = PLACEHOLDER_POOL_SIZE,
        seed: Optional[int] = None,
        pattern: str = PLACEHOLDER_PATTERN,
    ) -> None:
        if pool_size < 1:
            raise ValueError("Placeholder pool size must be at least 1.")
        self.pool_size = pool_size
        self.pattern = pattern
        self._rng = random.Random(seed)

    def pick(self) -> str:
        return self.pattern.format(number=self._rng.randint(1, self.pool_size))


def normalize_image_url(url: str) -> str:
    """Rewrite protocol-relative ``//host/path`` URLs to ``https://host/path``."""
    url = url.strip()
    if url.startswith("//"):
        return "https:" + url
    return url


def resolve_image(record: ValidRecord, picker: PlaceholderPicker) -> str:
    if record.image_url:
        return normalize_image_url(record.image_url)
    return picker.pick()


def to_index_entry(
    record: ValidRecord,
    picker: PlaceholderPicker,
    secondary_prefix: str = SECONDARY_PREFIX,
) -> IndexEntry:
    return IndexEntry(
        title=record.title,
        summary=record.summary,
        date=record.date,
        url=record_path(record, secondary_prefix),
        img=resolve_image(record, picker),
        alt=record.image_alt or record.title,
        category=record.category,
        lang=record.lang,
    )


def build_index(
    records: Iterable[ValidRecord],
    picker: PlaceholderPicker,
    secondary_prefix: str = SECONDARY_PREFIX,
) -> List[IndexEntry]:
    """Project *records* onto index rows, keeping their order (newest first)."""
    return [to_index_entry(record, picker, secondary_prefix) for record in records]


def combine_indexes(per_locale: Iterable[List[IndexEntry]]) -> List[IndexEntry]:
    """Concatenate per-locale indices; rows stay tagged by ``lang``."""
    combined: List[IndexEntry] = []
    for entries in per_locale:
        combined.extend(entries)
    return combined
