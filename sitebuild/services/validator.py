"""Publishability checks for normalised records.

Partial CMS data must never abort a build, so a failing record is reported
with a :class:`RejectionReason` and dropped by the caller.
"""

import json
import logging
import re
from collections import Counter
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from sitebuild.models.record import NormalizedRecord, ValidRecord, recency_key
from sitebuild.services.routing import normalize_category

logger = logging.getLogger(__name__)

# A serialized body shorter than this is treated as an editor-left shell
MIN_BODY_LENGTH = 50

# Slugs and categories become path segments of the page URL and output file
_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9._~-]+$")

# Nodes that carry content without any text of their own
_EMBED_NODE_TYPES = {
    "embedded-asset-block",
    "embedded-entry-block",
    "embedded-entry-inline",
}


class RejectionReason(str, Enum):
    MALFORMED_ENTRY = "malformed_entry"
    MISSING_TITLE = "missing_title"
    MISSING_SLUG = "missing_slug"
    UNSAFE_SLUG = "unsafe_slug"
    MISSING_CATEGORY = "missing_category"
    UNSAFE_CATEGORY = "unsafe_category"
    MISSING_BODY = "missing_body"
    EMPTY_BODY = "empty_body"
    SHORT_BODY = "short_body"
    DUPLICATE_SLUG = "duplicate_slug"


class ValidationResult(NamedTuple):
    record: Optional[ValidRecord]
    reason: Optional[RejectionReason]

    @property
    def ok(self) -> bool:
        return self.reason is None


def is_safe_segment(value: str) -> bool:
    """Return *True* when *value* can be used verbatim as one URL path segment."""
    return bool(_SAFE_SEGMENT.match(value)) and value.strip(".") != ""


def serialize_body(body: Any) -> str:
    """Return the canonical text form of *body* used for the length check."""
    if body is None:
        return ""
    if isinstance(body, str):
        return body.strip()
    return json.dumps(body, ensure_ascii=False, separators=(",", ":"))


def _walk(node: Any) -> Iterator[dict]:
    if not isinstance(node, dict):
        return
    yield node
    for child in node.get("content") or []:
        yield from _walk(child)


def _has_content(body: Any) -> bool:
    """A rich-text document has content when it holds visible text or an embed."""
    if not (isinstance(body, dict) and "nodeType" in body):
        return True
    for node in _walk(body):
        node_type = node.get("nodeType")
        if node_type in _EMBED_NODE_TYPES:
            return True
        if node_type == "text" and str(node.get("value") or "").strip():
            return True
    return False


def check_record(record: NormalizedRecord, min_body_length: int = MIN_BODY_LENGTH) -> Optional[RejectionReason]:
    """Return why *record* cannot be published, or ``None`` when it can."""
    if not record.title.strip():
        return RejectionReason.MISSING_TITLE
    if not record.slug.strip():
        return RejectionReason.MISSING_SLUG
    if not is_safe_segment(record.slug):
        return RejectionReason.UNSAFE_SLUG
    category = normalize_category(record.category)
    if not category:
        return RejectionReason.MISSING_CATEGORY
    if not is_safe_segment(category):
        return RejectionReason.UNSAFE_CATEGORY

    serialized = serialize_body(record.body)
    if not serialized:
        return RejectionReason.MISSING_BODY
    if not _has_content(record.body):
        return RejectionReason.EMPTY_BODY
    if len(serialized) < min_body_length:
        return RejectionReason.SHORT_BODY
    return None


def validate_record(record: NormalizedRecord, min_body_length: int = MIN_BODY_LENGTH) -> ValidationResult:
    reason = check_record(record, min_body_length)
    if reason is not None:
        return ValidationResult(None, reason)
    return ValidationResult(ValidRecord(**dict(record)), None)


def _log_drop(record: NormalizedRecord, reason: RejectionReason) -> None:
    logger.warning(
        "Dropping entry %s (%s/%s): %s",
        record.entry_id,
        record.lang,
        record.slug or "-",
        reason.value,
    )


def validate_records(
    records: Iterable[NormalizedRecord],
    min_body_length: int = MIN_BODY_LENGTH,
) -> Tuple[List[ValidRecord], Counter]:
    """Split *records* into publishable ones and a count of rejection reasons.

    Only one record per ``(locale, category, slug)`` is kept, the newest one,
    since they would share a URL.  Input order is otherwise preserved.
    """
    valid: List[ValidRecord] = []
    rejected: Counter = Counter()
    positions: Dict[tuple, int] = {}
    for record in records:
        result = validate_record(record, min_body_length)
        if not result.ok:
            rejected[result.reason.value] += 1
            _log_drop(record, result.reason)
            continue

        candidate = result.record
        key = (candidate.locale, normalize_category(candidate.category), candidate.slug)
        if key not in positions:
            positions[key] = len(valid)
            valid.append(candidate)
            continue

        kept = valid[positions[key]]
        if recency_key(candidate) > recency_key(kept):
            valid[positions[key]], candidate = candidate, kept
        rejected[RejectionReason.DUPLICATE_SLUG.value] += 1
        _log_drop(candidate, RejectionReason.DUPLICATE_SLUG)
    return valid, rejected
