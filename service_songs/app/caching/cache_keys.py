"""
Cache key derivation for the song listing.
"""

import hashlib
import json
from typing import Any, Dict

SONG_LIST_NAMESPACE = "songs:list"


def song_list_key_fields(search: str, semester: str, sort_by: str, sort_order: str) -> Dict[str, Any]:
    """Return the subset of listing parameters that identifies a cache entry.

    grade, played, scheduled, page and limit are not part of the key, so
    requests differing only in those share one entry.
    """
    return {
        "search": search or "",
        "semester": semester or "",
        "sortBy": sort_by,
        "sortOrder": sort_order,
    }


def song_list_cache_key(search: str, semester: str, sort_by: str, sort_order: str,
                        namespace: str = SONG_LIST_NAMESPACE) -> str:
    """Derive the namespaced content hash for a listing request."""
    canonical = json.dumps(
        song_list_key_fields(search, semester, sort_by, sort_order),
        ensure_ascii=False,
        separators=(",", ":"),
    )
    digest = hashlib.md5(canonical.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"
