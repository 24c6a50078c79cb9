"""Bulk entry fetch from the Contentful Content Delivery API."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from sitebuild.models.raw_entry import RawEntry

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000  # API maximum
INCLUDE_DEPTH = 2
ALL_LOCALES = "*"


class ContentFetchError(RuntimeError):
    """The content source could not deliver a usable response."""


def _entries_url(host: str, space_id: str, environment: str) -> str:
    return f"https://{host}/spaces/{space_id}/environments/{environment}/entries"


def _is_link(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and set(value) == {"sys"}
        and isinstance(value["sys"], dict)
        and value["sys"].get("type") == "Link"
    )


def _resolve_links(value: Any, includes: Dict[tuple, dict], depth: int = 0) -> Any:
    """Replace link stubs inside *value* with the included entity they point to.

    Unresolvable links (unpublished or beyond the include depth) are left as
    stubs; consumers treat them as absent.
    """
    if depth > INCLUDE_DEPTH + 2:
        return value
    if _is_link(value):
        sys = value["sys"]
        target = includes.get((sys.get("linkType"), sys.get("id")))
        if target is None:
            return value
        return {
            "sys": target.get("sys", {}),
            "fields": _resolve_links(target.get("fields", {}), includes, depth + 1),
        }
    if isinstance(value, dict):
        return {key: _resolve_links(item, includes, depth) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_links(item, includes, depth) for item in value]
    return value


def _index_includes(payload: dict) -> Dict[tuple, dict]:
    includes: Dict[tuple, dict] = {}
    for link_type, items in (payload.get("includes") or {}).items():
        for item in items or []:
            item_id = (item.get("sys") or {}).get("id")
            if item_id:
                includes[(link_type, item_id)] = item
    return includes


def parse_entries(payload: Any, localized: bool) -> List[RawEntry]:
    """Turn one page of an ``/entries`` response into :class:`RawEntry` objects.

    Raises:
        ContentFetchError: if the payload does not look like an entries collection.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
        raise ContentFetchError("Malformed entries response: missing 'items' list.")

    includes = _index_includes(payload)
    # Entries may link to other entries of the same page
    for item in payload["items"]:
        item_id = (item.get("sys") or {}).get("id") if isinstance(item, dict) else None
        if item_id:
            includes.setdefault(("Entry", item_id), item)

    entries: List[RawEntry] = []
    for item in payload["items"]:
        sys = item.get("sys") if isinstance(item, dict) else None
        if not isinstance(sys, dict) or not sys.get("id") or not sys.get("createdAt"):
            raise ContentFetchError("Malformed entries response: item without sys.id/createdAt.")
        entries.append(
            RawEntry(
                entry_id=sys["id"],
                created_at=sys["createdAt"],
                fields=_resolve_links(item.get("fields") or {}, includes),
                localized=localized,
            )
        )
    return entries


async def fetch_entries(
    space_id: str,
    access_token: str,
    locale: str,
    *,
    content_type: str = "master",
    environment: str = "master",
    host: str = "cdn.contentful.com",
    timeout: float = 15,
    client: Optional[httpx.AsyncClient] = None,
) -> List[RawEntry]:
    """Fetch every entry of *content_type* for *locale*, newest first.

    Pass ``locale="*"`` to receive all locales at once; field values are then
    locale maps and the entries are flagged ``localized``.

    Raises:
        ContentFetchError: on network errors, timeouts, non-2xx responses or a
            malformed response body.  The build must not continue without data.
    """
    if not space_id or not access_token:
        raise ContentFetchError("Content source credentials are not configured.")

    url = _entries_url(host, space_id, environment)
    headers = {"Authorization": f"Bearer {access_token}"}
    localized = locale == ALL_LOCALES
    params = {
        "content_type": content_type,
        "locale": locale,
        "order": "-sys.createdAt,sys.id",
        "include": INCLUDE_DEPTH,
        "limit": PAGE_SIZE,
    }

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    entries: List[RawEntry] = []
    skip = 0
    try:
        while True:
            try:
                resp = await client.get(url, params={**params, "skip": skip}, headers=headers)
                resp.raise_for_status()
                payload = resp.json()
            except httpx.TimeoutException as exc:
                raise ContentFetchError(f"Timed out fetching entries for locale {locale}.") from exc
            except httpx.HTTPStatusError as exc:
                raise ContentFetchError(
                    f"Content source returned HTTP {exc.response.status_code} for locale {locale}."
                ) from exc
            except httpx.HTTPError as exc:
                raise ContentFetchError(f"Error fetching entries for locale {locale}: {exc}") from exc
            except ValueError as exc:
                raise ContentFetchError(f"Content source returned invalid JSON for locale {locale}.") from exc

            page = parse_entries(payload, localized)
            entries.extend(page)
            total = payload.get("total", len(entries))
            skip += len(page)
            if not page or skip >= total:
                break
    finally:
        if own_client:
            await client.aclose()

    logger.info("Fetched entries", extra={"locale": locale, "count": len(entries)})
    return entries
