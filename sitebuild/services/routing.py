"""Canonical URL construction shared by the index, the pages and the sitemap."""

from pathlib import Path

from sitebuild.models.record import LocaleBucket, NormalizedRecord

SECONDARY_PREFIX = "/ru"


def normalize_category(category: str) -> str:
    """Return the trimmed, lower-cased form used for grouping and URLs."""
    return category.strip().lower()


def canonical_path(
    locale: LocaleBucket,
    category: str,
    slug: str,
    secondary_prefix: str = SECONDARY_PREFIX,
) -> str:
    """Return the site-relative URL of a detail page.

    ``/news/foo.html`` for the primary locale, ``/ru/news/foo.html`` for the
    secondary one.  This is the only place a record URL is derived.
    """
    prefix = secondary_prefix.rstrip("/") if locale == LocaleBucket.SECONDARY else ""
    return f"{prefix}/{normalize_category(category)}/{slug}.html"


def record_path(record: NormalizedRecord, secondary_prefix: str = SECONDARY_PREFIX) -> str:
    return canonical_path(record.locale, record.category, record.slug, secondary_prefix)


def absolute_url(site_url: str, path: str) -> str:
    """Join *site_url* (scheme + host) and a site-relative *path*."""
    return site_url.rstrip("/") + "/" + path.lstrip("/")


def output_file(output_dir: Path, path: str) -> Path:
    """Map a site-relative URL path onto the build output directory.

    Raises:
        ValueError: if *path* would resolve outside *output_dir*.
    """
    target = output_dir.joinpath(*[part for part in path.split("/") if part])
    root = output_dir.resolve()
    resolved = target.resolve()
    if resolved != root and root not in resolved.parents:
        raise ValueError(f"Page path {path!r} escapes the output directory {output_dir}.")
    return target
