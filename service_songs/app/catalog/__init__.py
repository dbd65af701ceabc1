"""
Catalog store access.

Every store execution goes through the transient retry wrapper composed
when the store client is constructed.
"""

from .models import PlayTimeWindow, Requester, SongFilter, SongRow
from .store import CatalogStore, SORTABLE_COLUMNS

__all__ = [
    "CatalogStore",
    "PlayTimeWindow",
    "Requester",
    "SongFilter",
    "SongRow",
    "SORTABLE_COLUMNS",
]
