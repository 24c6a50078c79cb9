"""Locale normalisation: raw CMS entries to flat single-locale records.

Two entry shapes are accepted.  A per-locale fetch returns scalar field
values; an all-locales fetch (``locale=*``) returns every field as a mapping
from locale code to value.  For the latter, what happens when a field is
missing in the requested locale is decided by :class:`FallbackPolicy`
rather than by whatever the CMS happened to return.
"""

import logging
from enum import Enum
from typing import Any, Optional

from sitebuild.models.locale import LocaleTarget
from sitebuild.models.raw_entry import RawEntry
from sitebuild.models.record import NormalizedRecord
from sitebuild.services.routing import normalize_category

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "dynamics"

# CMS field ids of the "master" content type
TITLE_FIELD = "title"
SLUG_FIELD = "slug"
CATEGORY_FIELD = "category"
BODY_FIELD = "body"
SUMMARY_FIELD = "summary"
DATE_FIELD = "datedTime"
IMAGE_FIELD = "featuredImage"
IMAGE_ALT_FIELD = "imgAlt"


class FallbackPolicy(str, Enum):
    STRICT = "strict"
    FALLBACK_TO_PRIMARY = "fallback-to-primary"


class MalformedEntryError(ValueError):
    """Raised when a localized entry carries a field that is not a locale map."""


def is_present(value: Any) -> bool:
    """Return *True* unless *value* is ``None``, blank text or an empty container."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (dict, list, tuple)):
        return bool(value)
    return True


def pick_locale(
    value: Any,
    locale: str,
    policy: FallbackPolicy,
    primary_locale: str,
) -> Any:
    """Select the value for *locale* out of a locale map.

    Under ``STRICT`` a value missing in *locale* is missing, full stop.  Under
    ``FALLBACK_TO_PRIMARY`` the primary locale's value is used instead.
    """
    if not isinstance(value, dict):
        return None
    candidate = value.get(locale)
    if is_present(candidate):
        return candidate
    if policy == FallbackPolicy.FALLBACK_TO_PRIMARY and locale != primary_locale:
        fallback = value.get(primary_locale)
        if is_present(fallback):
            return fallback
    return None


def resolve_field(
    entry: RawEntry,
    name: str,
    locale: str,
    policy: FallbackPolicy = FallbackPolicy.STRICT,
    primary_locale: str = "en-US",
) -> Any:
    """Return the value of field *name* for *locale*, or ``None`` when absent."""
    value = entry.fields.get(name)
    if not entry.localized:
        return value if is_present(value) else None
    if value is None:
        return None
    if not isinstance(value, dict):
        raise MalformedEntryError(
            f"Entry {entry.entry_id}: field '{name}' is not a locale map ({type(value).__name__})"
        )
    return pick_locale(value, locale, policy, primary_locale)


def _is_locale_map(value: dict, marker_keys: tuple) -> bool:
    return not any(key in value for key in marker_keys)


def resolve_image_url(
    entry: RawEntry,
    locale: str,
    policy: FallbackPolicy = FallbackPolicy.STRICT,
    primary_locale: str = "en-US",
) -> str:
    """Resolve the featured image URL through its nested asset structure.

    The asset link, the asset's ``file`` field and the file's
    ``url`` may each be either the plain value or a locale map.  Any missing
    level yields an empty string so the caller can use a placeholder.
    """
    asset = entry.fields.get(IMAGE_FIELD)
    if not isinstance(asset, dict):
        return ""
    if _is_locale_map(asset, ("fields", "sys")):
        asset = pick_locale(asset, locale, policy, primary_locale)
        if not isinstance(asset, dict):
            return ""

    asset_fields = asset.get("fields")
    if not isinstance(asset_fields, dict):
        return ""
    file_info = asset_fields.get("file")
    if not isinstance(file_info, dict):
        return ""
    if _is_locale_map(file_info, ("url", "contentType", "fileName")):
        file_info = pick_locale(file_info, locale, policy, primary_locale)
        if not isinstance(file_info, dict):
            return ""

    url = file_info.get("url")
    if isinstance(url, dict):
        url = pick_locale(url, locale, policy, primary_locale)
    return url.strip() if isinstance(url, str) else ""


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_entry(
    entry: RawEntry,
    target: LocaleTarget,
    policy: FallbackPolicy = FallbackPolicy.STRICT,
    primary_locale: str = "en-US",
    default_category: str = DEFAULT_CATEGORY,
) -> Optional[NormalizedRecord]:
    """Flatten *entry* into a :class:`NormalizedRecord` for *target*.

    Returns ``None`` when the entry has no title in the target locale, i.e. it
    is not applicable to that locale.

    Raises:
        MalformedEntryError: if a localized entry has a non-map field value.
    """

    def field(name: str) -> Any:
        return resolve_field(entry, name, target.code, policy, primary_locale)

    title = _text(field(TITLE_FIELD))
    if not title:
        logger.debug("Entry %s has no title for locale %s", entry.entry_id, target.code)
        return None

    category = normalize_category(_text(field(CATEGORY_FIELD))) or default_category
    date = field(DATE_FIELD)

    return NormalizedRecord(
        entry_id=entry.entry_id,
        created_at=entry.created_at,
        title=title,
        slug=_text(field(SLUG_FIELD)),
        category=category,
        body=field(BODY_FIELD),
        summary=_text(field(SUMMARY_FIELD)),
        date=_text(date) or None,
        image_url=resolve_image_url(entry, target.code, policy, primary_locale),
        image_alt=_text(field(IMAGE_ALT_FIELD)),
        locale=target.bucket,
        lang=target.lang,
    )
