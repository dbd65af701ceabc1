"""
Song listing caching package.

Both read surfaces share one namespace; entries hold the base result set
and are never expired or deleted by this service.
"""

from .cache_keys import SONG_LIST_NAMESPACE, song_list_cache_key
from .cache_manager import CacheNamespace, NamespacedCache, SongListCache

__all__ = [
    "CacheNamespace",
    "NamespacedCache",
    "SONG_LIST_NAMESPACE",
    "SongListCache",
    "song_list_cache_key",
]
