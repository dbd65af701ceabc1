"""
Namespaced Redis cache shared by the song listing surfaces.
"""

import json
from typing import Any, Dict, Optional, TYPE_CHECKING

import redis.asyncio as redis

from shared.logging import get_logger
from .cache_keys import SONG_LIST_NAMESPACE

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class NamespacedCache:
    """Plain get/set cache over Redis with explicit named namespaces.

    Values are JSON-serialized and written without expiry.
    """

    def __init__(self, redis_url: Optional[str] = None, *, client: Optional[redis.Redis] = None):
        if redis_url is None and client is None:
            raise ValueError("redis_url or client is required")
        self.redis_url = redis_url
        self.logger = get_logger("songs.cache")
        self._redis: Optional[redis.Redis] = client
        self._namespaces: Dict[str, "CacheNamespace"] = {}

    def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    def namespace(self, name: str) -> "CacheNamespace":
        """Return the accessor for a named namespace."""
        if name not in self._namespaces:
            self._namespaces[name] = CacheNamespace(self, name)
        return self._namespaces[name]

    async def get_raw(self, key: str) -> Optional[str]:
        value = await self._get_redis().get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set_raw(self, key: str, value: str) -> None:
        await self._get_redis().set(key, value)

    async def ping(self) -> bool:
        """Return True when Redis answers."""
        try:
            return bool(await self._get_redis().ping())
        except Exception as e:
            self.logger.warning("Cache ping failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close Redis connections."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class CacheNamespace:
    """Keys under one namespace tag."""

    def __init__(self, cache: NamespacedCache, name: str):
        self.cache = cache
        self.name = name
        self.logger = get_logger(f"songs.cache.{name.replace(':', '_')}")

    def qualify(self, key: str) -> str:
        """Prefix a key with the namespace tag unless it already carries it."""
        prefix = f"{self.name}:"
        return key if key.startswith(prefix) else f"{prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None on miss or cache failure."""
        qualified = self.qualify(key)
        try:
            raw = await self.cache.get_raw(qualified)
        except Exception as exc:
            self.logger.error("Cache fetch error", key=qualified, error=str(exc))
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            self.logger.warning("Failed to deserialize cached payload", key=qualified)
            return None

    async def set(self, key: str, value: Any) -> bool:
        """Cache a JSON-serializable value without expiry."""
        qualified = self.qualify(key)
        try:
            payload = json.dumps(value, ensure_ascii=False, default=str)
            await self.cache.set_raw(qualified, payload)
            self.logger.debug("Cached value", key=qualified)
            return True
        except Exception as exc:
            self.logger.error("Cache set error", key=qualified, error=str(exc))
            return False


class SongListCache:
    """Shared accessor for cached song listing base results."""

    def __init__(
        self,
        cache: NamespacedCache,
        *,
        namespace: str = SONG_LIST_NAMESPACE,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.entries = cache.namespace(namespace)
        self.metrics = metrics
        self.logger = get_logger("songs.cache.song_list")

    async def get_song_list(self, key: str, *, surface: str = "internal") -> Optional[Dict[str, Any]]:
        """Look up a cached base result set."""
        cached = await self.entries.get(key)
        if not isinstance(cached, dict):
            cached = None

        if self.metrics:
            self.metrics.record_cache_access("song_list", surface, hit=cached is not None)
        return cached

    async def set_song_list(self, key: str, payload: Dict[str, Any]) -> bool:
        """Store a base result set under its key."""
        stored = await self.entries.set(key, payload)
        if stored:
            self.logger.info(
                "Song list cached",
                key=self.entries.qualify(key),
                songs=len(payload.get("songs", [])),
            )
        return stored
