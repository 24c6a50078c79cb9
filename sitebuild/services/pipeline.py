"""Build orchestration: fetch, reconcile per locale, write the site, merge the sitemap."""

import logging
from collections import Counter
from datetime import date
from typing import Dict, List, NamedTuple, Optional, Tuple

import httpx

from sitebuild.config import BuildSettings, FetchMode
from sitebuild.models.build_report import BuildReport
from sitebuild.models.index_entry import IndexEntry
from sitebuild.models.locale import LocaleResult, LocaleTarget
from sitebuild.models.raw_entry import RawEntry
from sitebuild.models.record import NormalizedRecord
from sitebuild.services.fetcher import ALL_LOCALES, fetch_entries
from sitebuild.services.indexer import PlaceholderPicker, build_index, combine_indexes
from sitebuild.services.normalizer import MalformedEntryError, normalize_entry
from sitebuild.services.routing import absolute_url
from sitebuild.services.sequencer import newest_first, sequence_records
from sitebuild.services.site_writer import write_site
from sitebuild.services.sitemap import load_sitemap, merge_sitemap, new_sitemap_entries, save_sitemap
from sitebuild.services.validator import RejectionReason, validate_records

logger = logging.getLogger(__name__)


class SiteArtifacts(NamedTuple):
    locales: List[LocaleResult]
    sitemap_urls: List[str]  # absolute, in index order

    @property
    def combined_index(self) -> List[IndexEntry]:
        return combine_indexes(result.index for result in self.locales)


def normalize_entries(
    entries: List[RawEntry],
    target: LocaleTarget,
    settings: BuildSettings,
) -> Tuple[List[NormalizedRecord], Counter]:
    """Normalise *entries* for *target*, skipping entries absent in that locale."""
    records: List[NormalizedRecord] = []
    dropped: Counter = Counter()
    for entry in entries:
        try:
            record = normalize_entry(
                entry,
                target,
                policy=settings.fallback_policy,
                primary_locale=settings.primary_locale,
                default_category=settings.default_category,
            )
        except MalformedEntryError as exc:
            logger.warning("Dropping malformed entry: %s", exc)
            dropped[RejectionReason.MALFORMED_ENTRY.value] += 1
            continue
        if record is not None:
            records.append(record)
    return records, dropped


def process_locale(
    entries: List[RawEntry],
    target: LocaleTarget,
    settings: BuildSettings,
    picker: PlaceholderPicker,
) -> LocaleResult:
    records, dropped = normalize_entries(entries, target, settings)
    valid, rejected = validate_records(records, settings.min_body_length)
    dropped.update(rejected)
    # Index rows and pages share one order regardless of the fetch order
    valid = newest_first(valid)

    index = build_index(valid, picker, settings.secondary_prefix)
    pages = sequence_records(valid, settings.secondary_prefix)
    logger.info(
        "Locale processed",
        extra={"locale": target.code, "published": len(valid), "dropped": sum(dropped.values())},
    )
    return LocaleResult(target=target, index=index, pages=pages, dropped=dropped)


def assemble_site(
    entries_by_locale: Dict[str, List[RawEntry]],
    settings: BuildSettings,
    picker: Optional[PlaceholderPicker] = None,
) -> SiteArtifacts:
    """Run both locale passes over already fetched entries.

    Pure apart from logging; nothing is written to disk.
    """
    if picker is None:
        picker = PlaceholderPicker(settings.placeholder_pool_size, settings.placeholder_seed)

    results: List[LocaleResult] = []
    sitemap_urls: List[str] = []
    for target in settings.locale_targets:
        entries = entries_by_locale.get(target.code, [])
        result = process_locale(entries, target, settings, picker)
        results.append(result)
        sitemap_urls.extend(absolute_url(settings.site_url, entry.url) for entry in result.index)
    return SiteArtifacts(locales=results, sitemap_urls=sitemap_urls)


async def fetch_all(
    settings: BuildSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, List[RawEntry]]:
    """Fetch the raw entries for every configured locale.

    Raises:
        ContentFetchError: propagated unchanged; a build without data must abort.
    """
    kwargs = dict(
        content_type=settings.content_type,
        environment=settings.environment,
        host=settings.host,
        timeout=settings.fetch_timeout,
        client=client,
    )
    codes = [target.code for target in settings.locale_targets]

    if settings.fetch_mode == FetchMode.ALL_LOCALES:
        entries = await fetch_entries(settings.space_id, settings.access_token, ALL_LOCALES, **kwargs)
        return {code: entries for code in codes}

    fetched: Dict[str, List[RawEntry]] = {}
    for code in codes:
        fetched[code] = await fetch_entries(settings.space_id, settings.access_token, code, **kwargs)
    return fetched


def update_sitemap(
    settings: BuildSettings,
    urls: List[str],
    today: str,
) -> Tuple[int, List[str]]:
    """Merge *urls* into the persisted sitemap and write both copies.

    Returns the merged entry count and the URLs that were not known before.
    """
    prior = load_sitemap(settings.source_sitemap)
    known = {entry.loc for entry in prior}
    merged = merge_sitemap(
        prior,
        new_sitemap_entries(urls, today, settings.sitemap_priority),
        settings.sitemap_order,
    )
    save_sitemap(merged, [settings.output_dir / "sitemap.xml", settings.source_sitemap])

    added: List[str] = []
    for url in urls:
        if url not in known:
            known.add(url)
            added.append(url)
    return len(merged), added


async def run_build(
    settings: BuildSettings,
    today: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BuildReport:
    """Run one complete build and return its report.

    The fetch happens before anything is written, so a fetch failure leaves
    the previous output untouched.
    """
    entries_by_locale = await fetch_all(settings, client)
    artifacts = assemble_site(entries_by_locale, settings)
    pages_written = write_site(artifacts.locales, settings)

    sitemap_size, added = update_sitemap(
        settings, artifacts.sitemap_urls, today or date.today().isoformat()
    )

    dropped: Counter = Counter()
    for result in artifacts.locales:
        dropped.update(result.dropped)
    report = BuildReport(
        published={result.target.lang: len(result.index) for result in artifacts.locales},
        dropped=dict(dropped),
        pages_written=pages_written,
        index_entries=len(artifacts.combined_index),
        sitemap_entries=sitemap_size,
        new_sitemap_urls=added,
    )
    logger.info(
        "Build finished",
        extra={
            "pages": report.pages_written,
            "index_entries": report.index_entries,
            "dropped": report.dropped_total,
            "sitemap_entries": report.sitemap_entries,
        },
    )
    return report
