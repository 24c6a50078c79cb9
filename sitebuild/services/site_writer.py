"""Writes the deployable site: static assets, detail pages and JSON indices."""

import html
import json
import logging
import shutil
from pathlib import Path
from typing import Dict, Iterable, List

from sitebuild.config import BuildSettings
from sitebuild.models.index_entry import IndexEntry
from sitebuild.models.locale import LocaleResult, LocaleTarget
from sitebuild.models.record import DetailPage
from sitebuild.services.rich_text import render_rich_text
from sitebuild.services.routing import output_file

logger = logging.getLogger(__name__)

COMBINED_INDEX = "data.json"


class SiteWriteError(RuntimeError):
    """The output could not be produced (e.g. no detail template)."""


def reset_output(output_dir: Path) -> None:
    if output_dir.exists():
        shutil.rmtree(output_dir)
    output_dir.mkdir(parents=True)


def copy_static_assets(source_dir: Path, output_dir: Path, assets: Iterable[str]) -> int:
    """Copy the listed files and folders that exist under *source_dir*."""
    copied = 0
    for name in assets:
        src = source_dir / name
        if src.is_file():
            shutil.copy2(src, output_dir / name)
        elif src.is_dir():
            shutil.copytree(src, output_dir / name, dirs_exist_ok=True)
        else:
            continue
        copied += 1
    return copied


def load_template(source_dir: Path, target: LocaleTarget, fallback: str) -> str:
    """Return the detail template for *target*, falling back to *fallback*."""
    for name in (target.template, fallback):
        path = source_dir / name
        if path.is_file():
            return path.read_text(encoding="utf-8")
    raise SiteWriteError(f"No detail template found for locale {target.code} in {source_dir}.")


def render_page(
    template: str,
    page: DetailPage,
    image: str,
    category_label: str,
) -> str:
    """Substitute the ``{{PLACEHOLDER}}`` markers of *template* for *page*."""
    record = page.record
    values: Dict[str, str] = {
        "TITLE": html.escape(record.title),
        "CONTENT": render_rich_text(record.body),
        "DATE": html.escape(record.date or ""),
        "SUMMARY": html.escape(record.summary),
        "IMAGE": html.escape(image, quote=True),
        "ALT": html.escape(record.image_alt or record.title, quote=True),
        "CATEGORY": record.category,
        "CATEGORY_LABEL": html.escape(category_label),
        "URL": page.url,
        "LANG": record.lang,
        "PREV_URL": page.prev.url if page.prev else "",
        "PREV_TITLE": html.escape(page.prev.title) if page.prev else "",
        "NEXT_URL": page.next.url if page.next else "",
        "NEXT_TITLE": html.escape(page.next.title) if page.next else "",
    }
    rendered = template
    for key, value in values.items():
        rendered = rendered.replace("{{" + key + "}}", value)
    return rendered


def write_index(path: Path, entries: List[IndexEntry]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [entry.model_dump() for entry in entries]
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def write_site(results: Iterable[LocaleResult], settings: BuildSettings) -> int:
    """Write the site for the per-locale *results*; return the number of pages.

    The output directory is recreated from scratch.

    Raises:
        SiteWriteError: if a template is missing or a page path escapes the
            output directory.
    """
    results = list(results)
    templates = {
        result.target.code: load_template(settings.source_dir, result.target, settings.primary_template)
        for result in results
    }
    output_dir = settings.output_dir
    reset_output(output_dir)
    assets = copy_static_assets(settings.source_dir, output_dir, settings.static_assets)
    logger.info("Static assets copied", extra={"count": assets})

    pages_written = 0
    combined: List[IndexEntry] = []
    for result in results:
        target = result.target
        template = templates[target.code]
        labels = settings.category_labels.get(target.lang, {})
        images = {entry.url: entry.img for entry in result.index}

        for page in result.pages:
            category = page.record.category
            html_text = render_page(
                template,
                page,
                images.get(page.url, ""),
                labels.get(category, category.capitalize()),
            )
            try:
                path = output_file(output_dir, page.url)
            except ValueError as exc:
                raise SiteWriteError(str(exc)) from exc
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(html_text, encoding="utf-8")
            pages_written += 1

        write_index(output_dir / f"data-{target.lang}.json", result.index)
        combined.extend(result.index)

    write_index(output_dir / COMBINED_INDEX, combined)
    logger.info("Site written", extra={"pages": pages_written, "index_entries": len(combined)})
    return pages_written
