"""Per-category ordering and previous/next navigation.

Adjacency is computed inside each category partition only, so paging through
one category never lands the reader in another.
"""

from typing import Dict, Iterable, List, Optional

from sitebuild.models.record import DetailPage, NavLink, ValidRecord, recency_key
from sitebuild.services.routing import SECONDARY_PREFIX, normalize_category, record_path


def newest_first(records: Iterable[ValidRecord]) -> List[ValidRecord]:
    """Return *records* in the total newest-first order shared by the index and the pages."""
    return sorted(records, key=recency_key, reverse=True)


def group_by_category(records: Iterable[ValidRecord]) -> Dict[str, List[ValidRecord]]:
    """Partition *records* by normalised category, each group newest-first.

    Groups are returned in order of first appearance.
    """
    groups: Dict[str, List[ValidRecord]] = {}
    for record in records:
        groups.setdefault(normalize_category(record.category), []).append(record)
    return {category: newest_first(group) for category, group in groups.items()}


def _link(record: ValidRecord, secondary_prefix: str) -> NavLink:
    return NavLink(slug=record.slug, title=record.title, url=record_path(record, secondary_prefix))


def sequence_group(
    group: List[ValidRecord],
    secondary_prefix: str = SECONDARY_PREFIX,
) -> List[DetailPage]:
    """Attach prev (older) / next (newer) links to an already ordered group."""
    pages: List[DetailPage] = []
    for i, record in enumerate(group):
        prev_link: Optional[NavLink] = None
        next_link: Optional[NavLink] = None
        if i + 1 < len(group):
            prev_link = _link(group[i + 1], secondary_prefix)
        if i > 0:
            next_link = _link(group[i - 1], secondary_prefix)
        pages.append(
            DetailPage(
                record=record,
                url=record_path(record, secondary_prefix),
                prev=prev_link,
                next=next_link,
            )
        )
    return pages


def sequence_records(
    records: Iterable[ValidRecord],
    secondary_prefix: str = SECONDARY_PREFIX,
) -> List[DetailPage]:
    """Return one :class:`DetailPage` per record of a single locale."""
    pages: List[DetailPage] = []
    for group in group_by_category(records).values():
        pages.extend(sequence_group(group, secondary_prefix))
    return pages
