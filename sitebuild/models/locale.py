from collections import Counter
from typing import List, NamedTuple

from pydantic import BaseModel

from sitebuild.models.index_entry import IndexEntry
from sitebuild.models.record import DetailPage, LocaleBucket


class LocaleTarget(BaseModel):
    """A single locale pass of the build."""

    code: str  # CMS locale code, e.g. "en-US"
    bucket: LocaleBucket
    lang: str  # value written to IndexEntry.lang, e.g. "en"
    template: str = "template.html"


class LocaleResult(NamedTuple):
    """Output of one locale pass: index rows and detail pages in the same order."""

    target: LocaleTarget
    index: List[IndexEntry]
    pages: List[DetailPage]
    dropped: Counter
