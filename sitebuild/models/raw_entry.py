from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field


class RawEntry(BaseModel):
    """One content entry as returned by the CMS bulk fetch.

    When *localized* is ``False`` every value in *fields* is already scalar for
    the requested locale.  When it is ``True`` (``locale=*`` fetch) every value
    is a mapping from locale code to value.
    """

    entry_id: str
    created_at: datetime
    fields: Dict[str, Any] = Field(default_factory=dict)
    localized: bool = False
