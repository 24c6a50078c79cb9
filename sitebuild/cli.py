"""Command-line entry point: ``python -m sitebuild build`` / ``serve``."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from sitebuild.config import BuildSettings, FetchMode
from sitebuild.logging_config import configure_logging
from sitebuild.services.fetcher import ContentFetchError
from sitebuild.services.normalizer import FallbackPolicy
from sitebuild.services.pipeline import run_build
from sitebuild.services.site_writer import SiteWriteError

logger = logging.getLogger(__name__)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sitebuild", description="Build the static site from the CMS.")
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: ./.env).")
    parser.add_argument("--log-level", default=None, help="Logging level (default: SITEBUILD_LOG_LEVEL or INFO).")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Fetch content and write the site.")
    build.add_argument("--source-dir", type=Path, default=None, help="Templates, static assets and sitemap source.")
    build.add_argument("--output-dir", type=Path, default=None, help="Deployable output directory.")
    build.add_argument("--sitemap", type=Path, default=None, help="Source-of-truth sitemap path.")
    build.add_argument(
        "--fallback-policy",
        choices=[p.value for p in FallbackPolicy],
        default=None,
        help="Locale fallback policy (default: strict).",
    )
    build.add_argument(
        "--fetch-mode",
        choices=[m.value for m in FetchMode],
        default=None,
        help="One request per locale or one all-locales request.",
    )
    build.add_argument("--seed", type=int, default=None, help="Seed for placeholder image selection.")

    serve = sub.add_parser("serve", help="Run the rebuild webhook API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def _build(args: argparse.Namespace) -> int:
    settings = BuildSettings.from_env(
        args.env_file,
        source_dir=args.source_dir,
        output_dir=args.output_dir,
        sitemap_path=args.sitemap,
        fallback_policy=args.fallback_policy,
        fetch_mode=args.fetch_mode,
        placeholder_seed=args.seed,
        log_level=args.log_level,
    )
    configure_logging(settings.log_level)

    try:
        report = asyncio.run(run_build(settings))
    except ContentFetchError as exc:
        logger.error("Build failed: content fetch error: %s", exc)
        return 1
    except (SiteWriteError, OSError) as exc:
        logger.error("Build failed: could not write the site: %s", exc)
        return 1

    if report.dropped_total:
        logger.warning("Dropped %d record(s): %s", report.dropped_total, report.dropped)
    logger.info(
        "Built %d page(s), %d index entries, sitemap has %d URL(s) (%d new)",
        report.pages_written,
        report.index_entries,
        report.sitemap_entries,
        len(report.new_sitemap_urls),
    )
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("sitebuild.main:app", host=args.host, port=args.port, log_level=(args.log_level or "info").lower())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parser().parse_args(argv)
    if args.command == "serve":
        return _serve(args)
    return _build(args)


if __name__ == "__main__":
    sys.exit(main())
