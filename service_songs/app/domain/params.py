"""
Listing query parameters and their permissive parsing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..caching.cache_keys import song_list_cache_key
from ..catalog.models import SongFilter

SORT_FIELDS = ("createdAt", "title", "artist", "playedAt", "votes")
SORT_ORDERS = ("asc", "desc")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class ListingDefaults:
    """Defaults applied when a parameter is absent or malformed."""

    page: int = 1
    limit: int = 20
    max_limit: int = 100
    sort_by: str = "createdAt"
    sort_order: str = "desc"


@dataclass(frozen=True)
class QueryParameters:
    """Normalized song listing request."""

    search: str = ""
    semester: str = ""
    grade: str = ""
    played: Optional[bool] = None
    scheduled: Optional[bool] = None
    page: int = 1
    limit: int = 20
    sort_by: str = "createdAt"
    sort_order: str = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def store_filter(self) -> SongFilter:
        """Filters applied by the store; scheduled is applied afterwards."""
        return SongFilter(
            search=self.search,
            semester=self.semester,
            grade=self.grade,
            played=self.played,
        )

    def cache_key(self) -> str:
        return song_list_cache_key(self.search, self.semester, self.sort_by, self.sort_order)


def parse_int(value: Any) -> Optional[int]:
    """Parse the leading integer of a value, or None when there is none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def parse_tristate(value: Any) -> Optional[bool]:
    """Map "true"/"false" to booleans; anything else means unset."""
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def parse_query_parameters(raw: Mapping[str, Any], defaults: Optional[ListingDefaults] = None) -> QueryParameters:
    """Normalize raw request parameters, falling back to defaults on bad input."""
    defaults = defaults or ListingDefaults()

    page = parse_int(raw.get("page"))
    if page is None or page < 1:
        page = defaults.page

    limit = parse_int(raw.get("limit"))
    if limit is None or limit < 1:
        limit = defaults.limit
    limit = min(limit, defaults.max_limit)

    sort_by = _text(raw.get("sortBy"))
    if sort_by not in SORT_FIELDS:
        sort_by = defaults.sort_by

    sort_order = _text(raw.get("sortOrder"))
    if sort_order not in SORT_ORDERS:
        sort_order = defaults.sort_order

    return QueryParameters(
        search=_text(raw.get("search")),
        semester=_text(raw.get("semester")),
        grade=_text(raw.get("grade")),
        played=parse_tristate(raw.get("played")),
        scheduled=parse_tristate(raw.get("scheduled")),
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
