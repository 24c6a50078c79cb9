"""Build settings, read from the environment (and an optional ``.env`` file)."""

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from sitebuild.models.locale import LocaleTarget
from sitebuild.models.record import LocaleBucket
from sitebuild.services.normalizer import DEFAULT_CATEGORY, FallbackPolicy
from sitebuild.services.sitemap import DEFAULT_PRIORITY, InsertionOrder
from sitebuild.services.validator import MIN_BODY_LENGTH


class FetchMode(str, Enum):
    PER_LOCALE = "per_locale"  # one request per locale, scalar fields
    ALL_LOCALES = "all_locales"  # one locale=* request, locale-keyed fields


_STATIC_ASSETS = (
    "imgs",
    "flags",
    "news",
    "dynamics",
    "knowledge",
    "products",
    "ru",
    "zh",
    "script.js",
    "styles.css",
    "robots.txt",
    "favicon.ico",
)

_CATEGORY_LABELS = {
    "ru": {
        "dynamics": "Динамика",
        "knowledge": "Знания",
        "news": "Новости",
    },
}

# Environment variable -> settings field
_ENV_FIELDS = {
    "CONTENTFUL_SPACE_ID": "space_id",
    "CONTENTFUL_ACCESS_TOKEN": "access_token",
    "CONTENTFUL_ENVIRONMENT": "environment",
    "CONTENTFUL_HOST": "host",
    "SITEBUILD_CONTENT_TYPE": "content_type",
    "SITEBUILD_PRIMARY_LOCALE": "primary_locale",
    "SITEBUILD_SECONDARY_LOCALE": "secondary_locale",
    "SITEBUILD_PRIMARY_LANG": "primary_lang",
    "SITEBUILD_SECONDARY_LANG": "secondary_lang",
    "SITEBUILD_SECONDARY_PREFIX": "secondary_prefix",
    "SITEBUILD_FETCH_MODE": "fetch_mode",
    "SITEBUILD_FALLBACK_POLICY": "fallback_policy",
    "SITEBUILD_DEFAULT_CATEGORY": "default_category",
    "SITEBUILD_MIN_BODY_LENGTH": "min_body_length",
    "SITEBUILD_PLACEHOLDER_POOL_SIZE": "placeholder_pool_size",
    "SITEBUILD_PLACEHOLDER_SEED": "placeholder_seed",
    "SITEBUILD_SITE_URL": "site_url",
    "SITEBUILD_SOURCE_DIR": "source_dir",
    "SITEBUILD_OUTPUT_DIR": "output_dir",
    "SITEBUILD_SITEMAP_PATH": "sitemap_path",
    "SITEBUILD_SITEMAP_PRIORITY": "sitemap_priority",
    "SITEBUILD_SITEMAP_ORDER": "sitemap_order",
    "SITEBUILD_FETCH_TIMEOUT": "fetch_timeout",
    "SITEBUILD_BUILD_TOKEN": "build_token",
    "SITEBUILD_LOG_LEVEL": "log_level",
}


class BuildSettings(BaseModel):
    # Content source
    space_id: str = ""
    access_token: str = ""
    environment: str = "master"
    host: str = "cdn.contentful.com"
    content_type: str = "master"
    fetch_mode: FetchMode = FetchMode.PER_LOCALE
    fetch_timeout: float = Field(default=15.0, gt=0)

    # Locales
    primary_locale: str = "en-US"
    secondary_locale: str = "ru"
    primary_lang: str = "en"
    secondary_lang: str = "ru"
    secondary_prefix: str = "/ru"
    primary_template: str = "template.html"
    secondary_template: str = "template_ru.html"
    fallback_policy: FallbackPolicy = FallbackPolicy.STRICT

    # Content rules
    default_category: str = DEFAULT_CATEGORY
    min_body_length: int = Field(default=MIN_BODY_LENGTH, ge=0)
    placeholder_pool_size: int = Field(default=43, ge=1)
    placeholder_seed: Optional[int] = None
    category_labels: Dict[str, Dict[str, str]] = Field(default_factory=lambda: dict(_CATEGORY_LABELS))

    # Output
    site_url: str = "https://example.com"
    source_dir: Path = Path(".")
    output_dir: Path = Path("dist")
    sitemap_path: Path = Path("sitemap.xml")
    sitemap_priority: float = Field(default=DEFAULT_PRIORITY, ge=0, le=1)
    sitemap_order: InsertionOrder = InsertionOrder.APPEND
    static_assets: Tuple[str, ...] = _STATIC_ASSETS

    # Service
    build_token: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides) -> "BuildSettings":
        """Build settings from environment variables, then apply *overrides*.

        Values from *env_file* (default: ``.env`` in the working directory) are
        loaded first without overriding variables already set.
        """
        load_dotenv(env_file)
        values = {
            field: os.environ[var]
            for var, field in _ENV_FIELDS.items()
            if os.environ.get(var, "") != ""
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)

    @property
    def locale_targets(self) -> List[LocaleTarget]:
        return [
            LocaleTarget(
                code=self.primary_locale,
                bucket=LocaleBucket.PRIMARY,
                lang=self.primary_lang,
                template=self.primary_template,
            ),
            LocaleTarget(
                code=self.secondary_locale,
                bucket=LocaleBucket.SECONDARY,
                lang=self.secondary_lang,
                template=self.secondary_template,
            ),
        ]

    @property
    def source_sitemap(self) -> Path:
        if self.sitemap_path.is_absolute():
            return self.sitemap_path
        return self.source_dir / self.sitemap_path


@lru_cache
def get_settings() -> BuildSettings:
    return BuildSettings.from_env()
