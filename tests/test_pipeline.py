"""End-to-end tests for sitebuild.services.pipeline.

Fetching is patched out; everything else (normalisation, validation,
sequencing, indexing, page writing and the sitemap merge) runs for real
against a temporary directory.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from sitebuild.config import BuildSettings, FetchMode
from sitebuild.models.raw_entry import RawEntry
from sitebuild.services.fetcher import ContentFetchError
from sitebuild.services.normalizer import FallbackPolicy
from sitebuild.services.pipeline import assemble_site, fetch_all, run_build
from sitebuild.services.sitemap import load_sitemap
from sitebuild.services.site_writer import SiteWriteError, write_site

_BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)

_TEMPLATE = (
    "<html lang='{{LANG}}'><h1>{{TITLE}}</h1><span class='cat'>{{CATEGORY_LABEL}}</span>"
    "<img src='{{IMAGE}}' alt='{{ALT}}'>{{CONTENT}}"
    "<a class='prev' href='{{PREV_URL}}'>{{PREV_TITLE}}</a>"
    "<a class='next' href='{{NEXT_URL}}'>{{NEXT_TITLE}}</a></html>"
)


def _doc(text: str) -> dict:
    return {
        "nodeType": "document",
        "data": {},
        "content": [
            {
                "nodeType": "paragraph",
                "data": {},
                "content": [{"nodeType": "text", "value": text, "marks": [], "data": {}}],
            }
        ],
    }


def _localized(entry_id: str, age_days: int, **fields) -> RawEntry:
    return RawEntry(
        entry_id=entry_id,
        created_at=_BASE - timedelta(days=age_days),
        fields=fields,
        localized=True,
    )


def _scenario_entries():
    """Entry "a" exists only in en-US; entry "b" in both locales."""
    only_en = _localized(
        "a",
        0,
        title={"en-US": "Alpha"},
        slug={"en-US": "a"},
        category={"en-US": "News"},
        body={"en-US": _doc("Alpha body text, long enough to publish.")},
    )
    both = _localized(
        "b",
        1,
        title={"en-US": "Beta", "ru": "Бета"},
        slug={"en-US": "b", "ru": "b"},
        category={"en-US": "News", "ru": "News"},
        body={"en-US": _doc("Beta body text in English."), "ru": _doc("Текст статьи на русском языке.")},
    )
    return [only_en, both]


def _settings(tmp_path, **overrides) -> BuildSettings:
    source = tmp_path / "src"
    source.mkdir(exist_ok=True)
    (source / "template.html").write_text(_TEMPLATE, encoding="utf-8")
    values = dict(
        space_id="space",
        access_token="token",
        source_dir=source,
        output_dir=tmp_path / "dist",
        site_url="https://example.com",
        placeholder_seed=1,
        fetch_mode=FetchMode.ALL_LOCALES,
    )
    values.update(overrides)
    return BuildSettings(**values)


def _by_code(entries):
    return {"en-US": entries, "ru": entries}


class TestAssembleSite:
    def test_strict_isolation_scenario(self, tmp_path):
        settings = _settings(tmp_path)
        artifacts = assemble_site(_by_code(_scenario_entries()), settings)
        en, ru = artifacts.locales

        assert len(en.index) == 2
        assert len(ru.index) == 1
        assert ru.index[0].url == "/ru/news/b.html"
        assert ru.index[0].lang == "ru"
        assert len(set(artifacts.sitemap_urls)) == 3
        assert "https://example.com/ru/news/b.html" in artifacts.sitemap_urls

    def test_fallback_policy_publishes_borrowed_entry(self, tmp_path):
        settings = _settings(tmp_path, fallback_policy=FallbackPolicy.FALLBACK_TO_PRIMARY)
        artifacts = assemble_site(_by_code(_scenario_entries()), settings)
        assert len(artifacts.locales[1].index) == 2

    def test_combined_index_is_tagged_by_lang(self, tmp_path):
        artifacts = assemble_site(_by_code(_scenario_entries()), _settings(tmp_path))
        assert [e.lang for e in artifacts.combined_index] == ["en", "en", "ru"]

    def test_invalid_and_malformed_entries_dropped(self, tmp_path):
        entries = _scenario_entries() + [
            _localized("c", 2, title={"en-US": "Empty"}, slug={"en-US": "c"}, body={"en-US": "short"}),
            _localized("d", 3, title={"en-US": "Broken"}, slug="not-a-map"),
        ]
        artifacts = assemble_site(_by_code(entries), _settings(tmp_path))
        en = artifacts.locales[0]
        assert len(en.index) == 2
        assert en.dropped == {"short_body": 1, "malformed_entry": 1}

    def test_pages_link_within_category(self, tmp_path):
        artifacts = assemble_site(_by_code(_scenario_entries()), _settings(tmp_path))
        pages = {p.url: p for p in artifacts.locales[0].pages}
        assert pages["/news/a.html"].prev.url == "/news/b.html"
        assert pages["/news/a.html"].next is None
        assert pages["/news/b.html"].next.url == "/news/a.html"

    def test_index_follows_page_order_for_oldest_first_input(self, tmp_path):
        entries = list(reversed(_scenario_entries()))
        artifacts = assemble_site(_by_code(entries), _settings(tmp_path))
        en = artifacts.locales[0]
        assert [e.url for e in en.index] == ["/news/a.html", "/news/b.html"]
        assert [p.url for p in en.pages] == [e.url for e in en.index]

    def test_duplicate_slug_published_once(self, tmp_path):
        duplicate = _localized(
            "a-old",
            5,
            title={"en-US": "Alpha (old)"},
            slug={"en-US": "a"},
            category={"en-US": "news"},
            body={"en-US": _doc("An older article that reused the same slug.")},
        )
        artifacts = assemble_site(_by_code(_scenario_entries() + [duplicate]), _settings(tmp_path))
        en = artifacts.locales[0]
        assert [e.url for e in en.index] == ["/news/a.html", "/news/b.html"]
        assert en.index[0].title == "Alpha"
        assert en.dropped == {"duplicate_slug": 1}
        assert len(set(artifacts.sitemap_urls)) == len(artifacts.sitemap_urls)


class TestFetchAll:
    def test_all_locales_single_request(self, tmp_path):
        fetch = AsyncMock(return_value=_scenario_entries())
        with patch("sitebuild.services.pipeline.fetch_entries", new=fetch):
            fetched = asyncio.run(fetch_all(_settings(tmp_path)))
        assert fetch.await_count == 1
        assert fetch.await_args.args[2] == "*"
        assert set(fetched) == {"en-US", "ru"}

    def test_per_locale_requests(self, tmp_path):
        fetch = AsyncMock(return_value=[])
        with patch("sitebuild.services.pipeline.fetch_entries", new=fetch):
            asyncio.run(fetch_all(_settings(tmp_path, fetch_mode=FetchMode.PER_LOCALE)))
        assert [c.args[2] for c in fetch.await_args_list] == ["en-US", "ru"]


class TestRunBuild:
    def _build(self, settings, today="2024-06-01"):
        with patch(
            "sitebuild.services.pipeline.fetch_entries",
            new=AsyncMock(return_value=_scenario_entries()),
        ):
            return asyncio.run(run_build(settings, today=today))

    def test_writes_complete_site(self, tmp_path):
        settings = _settings(tmp_path)
        report = self._build(settings)

        dist = tmp_path / "dist"
        assert (dist / "news" / "a.html").is_file()
        assert (dist / "news" / "b.html").is_file()
        assert (dist / "ru" / "news" / "b.html").is_file()
        assert not (dist / "ru" / "news" / "a.html").exists()

        combined = json.loads((dist / "data.json").read_text(encoding="utf-8"))
        assert len(combined) == 3
        assert len(json.loads((dist / "data-ru.json").read_text(encoding="utf-8"))) == 1

        assert report.published == {"en": 2, "ru": 1}
        assert report.pages_written == 3
        assert report.sitemap_entries == 3
        assert len(report.new_sitemap_urls) == 3

    def test_detail_page_content(self, tmp_path):
        self._build(_settings(tmp_path))
        page = (tmp_path / "dist" / "news" / "a.html").read_text(encoding="utf-8")
        assert "<h1>Alpha</h1>" in page
        assert "<p>" in page
        assert "Alpha body text, long enough to publish." in page
        assert "href='/news/b.html'>Beta</a>" in page
        assert "class='next' href=''>" in page

        ru_page = (tmp_path / "dist" / "ru" / "news" / "b.html").read_text(encoding="utf-8")
        # secondary template missing: primary template is used with the localized label
        assert "<html lang='ru'>" in ru_page
        assert "Новости" in ru_page

    def test_sitemap_written_to_both_locations(self, tmp_path):
        settings = _settings(tmp_path)
        self._build(settings)
        deployed = load_sitemap(tmp_path / "dist" / "sitemap.xml")
        source = load_sitemap(settings.source_sitemap)
        assert {e.loc for e in deployed} == {e.loc for e in source}
        assert len(source) == 3

    def test_rebuild_is_idempotent(self, tmp_path):
        settings = _settings(tmp_path)
        self._build(settings, today="2024-06-01")
        first = {e.loc for e in load_sitemap(settings.source_sitemap)}
        report = self._build(settings, today="2024-06-02")
        second = load_sitemap(settings.source_sitemap)

        assert {e.loc for e in second} == first
        assert report.new_sitemap_urls == []
        assert {e.lastmod for e in second} == {"2024-06-02"}

    def test_prior_sitemap_entries_kept(self, tmp_path):
        settings = _settings(tmp_path)
        settings.source_sitemap.write_text(
            "<urlset xmlns='http://www.sitemaps.org/schemas/sitemap/0.9'>"
            "<url><loc>https://example.com/</loc><priority>1.0</priority></url></urlset>",
            encoding="utf-8",
        )
        report = self._build(settings)
        locs = [e.loc for e in load_sitemap(settings.source_sitemap)]
        assert locs[0] == "https://example.com/"
        assert report.sitemap_entries == 4

    def test_corrupt_prior_sitemap_treated_as_empty(self, tmp_path):
        settings = _settings(tmp_path)
        settings.source_sitemap.write_text("<urlset><url>", encoding="utf-8")
        report = self._build(settings)
        assert report.sitemap_entries == 3

    def test_static_assets_copied(self, tmp_path):
        settings = _settings(tmp_path)
        (settings.source_dir / "styles.css").write_text("body{}", encoding="utf-8")
        (settings.source_dir / "imgs").mkdir()
        (settings.source_dir / "imgs" / "logo.png").write_bytes(b"png")
        self._build(settings)
        assert (tmp_path / "dist" / "styles.css").read_text(encoding="utf-8") == "body{}"
        assert (tmp_path / "dist" / "imgs" / "logo.png").is_file()

    def test_fetch_failure_aborts_without_output(self, tmp_path):
        settings = _settings(tmp_path)
        dist = tmp_path / "dist"
        dist.mkdir()
        (dist / "index.html").write_text("previous build", encoding="utf-8")

        with patch(
            "sitebuild.services.pipeline.fetch_entries",
            new=AsyncMock(side_effect=ContentFetchError("down")),
        ):
            with pytest.raises(ContentFetchError):
                asyncio.run(run_build(settings))

        assert (dist / "index.html").read_text(encoding="utf-8") == "previous build"
        assert not settings.source_sitemap.exists()

    def test_category_cannot_leave_output_dir(self, tmp_path):
        settings = _settings(tmp_path)
        escaping = _localized(
            "x",
            2,
            title={"en-US": "Escaped"},
            slug={"en-US": "pwned"},
            category={"en-US": "../../escaped"},
            body={"en-US": _doc("Body text that would otherwise be long enough.")},
        )
        with patch(
            "sitebuild.services.pipeline.fetch_entries",
            new=AsyncMock(return_value=_scenario_entries() + [escaping]),
        ):
            report = asyncio.run(run_build(settings, today="2024-06-01"))

        assert not (tmp_path / "escaped" / "pwned.html").exists()
        assert not (tmp_path / "dist" / "escaped").exists()
        assert report.dropped == {"unsafe_category": 1}
        assert report.pages_written == 3

    def test_page_url_outside_output_dir_is_fatal(self, tmp_path):
        settings = _settings(tmp_path)
        artifacts = assemble_site(_by_code(_scenario_entries()), settings)
        en = artifacts.locales[0]
        page = en.pages[0].model_copy(update={"url": "/../../escaped/pwned.html"})
        results = [en._replace(pages=[page])]

        with pytest.raises(SiteWriteError, match="escapes the output directory"):
            write_site(results, settings)
        assert not (tmp_path / "escaped").exists()

    def test_missing_template_is_fatal(self, tmp_path):
        settings = _settings(tmp_path)
        (settings.source_dir / "template.html").unlink()
        with pytest.raises(SiteWriteError):
            self._build(settings)
