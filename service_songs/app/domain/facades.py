"""
Internal and public read façades over the shared song listing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shared.errors import AuthenticationError, as_service_error
from shared.logging import get_logger, set_caller_context
from ..aggregation.engine import AggregationEngine
from ..caching.cache_manager import SongListCache
from .params import ListingDefaults, QueryParameters, parse_query_parameters


@dataclass
class ListingPage:
    """One page of the listing as seen by a façade."""

    songs: List[Dict[str, Any]]
    page: int
    limit: int
    total: int
    cached: bool = False

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


class SongListingService:
    """Cache-first access to the listing, shared by both façades.

    A hit only re-slices the cached songs by page and limit; grade, played
    and scheduled are not reapplied because they are not part of the key.
    A miss aggregates, writes the base result once, then narrows by the
    scheduled flag for the response.
    """

    def __init__(self, engine: AggregationEngine, cache: SongListCache):
        self.engine = engine
        self.cache = cache
        self.logger = get_logger("songs.listing")

    async def fetch(self, params: QueryParameters, *, surface: str = "internal") -> ListingPage:
        key = params.cache_key()

        cached = await self.cache.get_song_list(key, surface=surface)
        if cached is not None:
            self.logger.info("Song list cache hit", key=key, surface=surface)
            songs = cached.get("songs") or []
            start = params.offset
            return ListingPage(
                songs=songs[start:start + params.limit],
                page=params.page,
                limit=params.limit,
                total=int(cached.get("total") or 0),
                cached=True,
            )

        self.logger.info("Song list cache miss", key=key, surface=surface)
        result = await self.engine.aggregate(params)
        await self.cache.set_song_list(key, result.to_cache_payload())

        return ListingPage(
            songs=result.narrowed_songs(),
            page=params.page,
            limit=params.limit,
            total=result.total,
            cached=False,
        )


INTERNAL_SONG_FIELDS: Tuple[str, ...] = (
    "id", "title", "artist", "requester", "requesterId", "voteCount",
    "played", "playedAt", "playedAtFormatted", "semester", "createdAt",
    "updatedAt", "requestedAt", "scheduled", "cover", "musicPlatform",
    "musicId", "playUrl", "preferredPlayTimeId", "preferredPlayTime",
)

PUBLIC_SONG_FIELDS: Tuple[str, ...] = (
    "id", "title", "artist", "requester", "voteCount", "played", "playedAt",
    "playedAtFormatted", "scheduled", "semester", "createdAt", "cover",
    "musicPlatform", "musicId", "playUrl", "preferredPlayTime",
)


@dataclass(frozen=True)
class FacadeProfile:
    """What distinguishes one read surface from the other."""

    surface: str
    identity_attribute: str
    song_fields: Tuple[str, ...]
    defaults: ListingDefaults = field(default_factory=ListingDefaults)
    echo_filters: bool = False
    missing_identity_message: str = "Caller identity required"
    failure_message: str = "获取歌曲列表失败"

    def with_defaults(self, defaults: ListingDefaults) -> "FacadeProfile":
        return replace(self, defaults=defaults)


INTERNAL_PROFILE = FacadeProfile(
    surface="internal",
    identity_attribute="user_info",
    song_fields=INTERNAL_SONG_FIELDS,
    missing_identity_message="未授权访问",
)

PUBLIC_PROFILE = FacadeProfile(
    surface="public",
    identity_attribute="api_key",
    song_fields=PUBLIC_SONG_FIELDS,
    echo_filters=True,
    missing_identity_message="API认证失败",
)


class SongListFacade:
    """One read surface over the shared listing service."""

    def __init__(self, listing: SongListingService, profile: FacadeProfile):
        self.listing = listing
        self.profile = profile
        self.logger = get_logger(f"songs.facade.{profile.surface}")

    async def list_songs(self, identity: Any, raw_params: Mapping[str, Any]) -> Dict[str, Any]:
        """Serve one listing request. Failures carry a status code."""
        try:
            if not identity:
                raise AuthenticationError(self.profile.missing_identity_message)
            set_caller_context(caller_id=self._caller_id(identity), surface=self.profile.surface)

            params = parse_query_parameters(raw_params, self.profile.defaults)
            page = await self.listing.fetch(params, surface=self.profile.surface)
            return self.shape(page, params)

        except Exception as exc:
            error = as_service_error(exc, self.profile.failure_message)
            self.logger.error(
                "Failed to list songs",
                status_code=error.status_code,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            if error is exc:
                raise
            raise error from exc

    def shape(self, page: ListingPage, params: QueryParameters) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "songs": [self.shape_song(song) for song in page.songs],
            "pagination": page.pagination(),
        }
        if self.profile.echo_filters:
            data["filters"] = {
                "search": params.search or None,
                "semester": params.semester or None,
            }
        return {"success": True, "data": data}

    def shape_song(self, song: Mapping[str, Any]) -> Dict[str, Any]:
        shaped = {name: song.get(name) for name in self.profile.song_fields if name != "preferredPlayTime"}
        if "preferredPlayTime" in self.profile.song_fields and song.get("preferredPlayTime"):
            shaped["preferredPlayTime"] = song["preferredPlayTime"]
        return shaped

    @staticmethod
    def _caller_id(identity: Any) -> Optional[str]:
        if isinstance(identity, Mapping):
            value = identity.get("user_id") or identity.get("id")
            return str(value) if value is not None else None
        return None
