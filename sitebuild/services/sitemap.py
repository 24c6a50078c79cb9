"""Persistent sitemap: parse, merge with newly published URLs, serialise.

The persisted document is read into :class:`SitemapEntry` objects, merged,
and always written back as a complete document, so manual edits survive only
as entry data and never as raw text.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from xml.etree import ElementTree

from sitebuild.models.sitemap_entry import SitemapEntry

logger = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
DEFAULT_PRIORITY = 0.8


class InsertionOrder(str, Enum):
    APPEND = "append"  # new URLs go after the historical set
    PREPEND = "prepend"  # new URLs go before it, freshest content first


def _child_text(elem: ElementTree.Element, ns: str, tag: str) -> Optional[str]:
    child = elem.find(f"{ns}{tag}")
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def _parse_priority(value: Optional[str], loc: str) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring invalid sitemap priority %r for %s", value, loc)
        return None


def parse_sitemap(xml_text: str) -> List[SitemapEntry]:
    """Return the ``<url>`` entries of a sitemap document.

    A document that cannot be parsed is treated as an empty sitemap.
    """
    if not xml_text.strip():
        return []
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError as exc:
        logger.warning("Failed to parse sitemap XML, starting from an empty set: %s", exc)
        return []

    ns = root.tag.split("}")[0] + "}" if root.tag.startswith("{") else ""
    entries: List[SitemapEntry] = []
    for url_elem in root.iter(f"{ns}url"):
        loc = _child_text(url_elem, ns, "loc")
        if not loc:
            continue
        entries.append(
            SitemapEntry(
                loc=loc,
                lastmod=_child_text(url_elem, ns, "lastmod"),
                priority=_parse_priority(_child_text(url_elem, ns, "priority"), loc),
                changefreq=_child_text(url_elem, ns, "changefreq"),
            )
        )
    return entries


def load_sitemap(path: Path) -> List[SitemapEntry]:
    """Read the persisted sitemap at *path*; missing or unreadable means empty."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No previous sitemap at %s, starting from an empty set", path)
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read sitemap %s, starting from an empty set: %s", path, exc)
        return []
    return parse_sitemap(text)


def new_sitemap_entries(
    urls: Iterable[str],
    today: str,
    priority: float = DEFAULT_PRIORITY,
) -> List[SitemapEntry]:
    """Synthesize entries for freshly observed *urls* dated *today*."""
    return [SitemapEntry(loc=url, lastmod=today, priority=priority) for url in urls]


def _overlay(old: SitemapEntry, new: SitemapEntry) -> SitemapEntry:
    # Fields the new entry leaves unset keep their previous value
    update = new.model_dump(exclude_none=True)
    return old.model_copy(update=update)


def merge_sitemap(
    prior: Iterable[SitemapEntry],
    new_entries: Iterable[SitemapEntry],
    order: InsertionOrder = InsertionOrder.APPEND,
) -> List[SitemapEntry]:
    """Merge *new_entries* into *prior*, keyed by ``loc``.

    * An entry whose ``loc`` is already known replaces the known metadata in
      place (last write wins); its position does not change.
    * Unknown ``loc`` values are added as one block after the historical set
      (``APPEND``) or before it (``PREPEND``), keeping their own order.
    * Duplicate ``loc`` values inside either input collapse into one entry.

    Merging the same *new_entries* again yields the same set of ``loc`` values.
    """
    merged: Dict[str, SitemapEntry] = {}
    for entry in prior:
        known = merged.get(entry.loc)
        merged[entry.loc] = _overlay(known, entry) if known else entry

    added: Dict[str, SitemapEntry] = {}
    for entry in new_entries:
        if entry.loc in merged:
            merged[entry.loc] = _overlay(merged[entry.loc], entry)
        elif entry.loc in added:
            added[entry.loc] = _overlay(added[entry.loc], entry)
        else:
            added[entry.loc] = entry

    if order == InsertionOrder.PREPEND:
        return list(added.values()) + list(merged.values())
    return list(merged.values()) + list(added.values())


def _format_priority(priority: float) -> str:
    return f"{priority:.1f}" if round(priority, 1) == priority else str(priority)


def serialize_sitemap(entries: Iterable[SitemapEntry]) -> str:
    """Return a complete sitemaps.org ``urlset`` document for *entries*."""
    root = ElementTree.Element("urlset", xmlns=SITEMAP_NS)
    for entry in entries:
        url_elem = ElementTree.SubElement(root, "url")
        ElementTree.SubElement(url_elem, "loc").text = entry.loc
        if entry.lastmod:
            ElementTree.SubElement(url_elem, "lastmod").text = entry.lastmod
        if entry.changefreq:
            ElementTree.SubElement(url_elem, "changefreq").text = entry.changefreq
        if entry.priority is not None:
            ElementTree.SubElement(url_elem, "priority").text = _format_priority(entry.priority)
    ElementTree.indent(root, space="  ")
    body = ElementTree.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n"


def save_sitemap(entries: List[SitemapEntry], paths: Iterable[Path]) -> None:
    """Write the merged sitemap to every path in *paths*.

    Typically the deployable output copy and the source-of-truth copy read by
    the next build.
    """
    document = serialize_sitemap(entries)
    for path in paths:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(document, encoding="utf-8")
        logger.info("Sitemap written", extra={"path": str(path), "entries": len(entries)})
