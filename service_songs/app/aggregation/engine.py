"""
Aggregation pipeline for one page of the song listing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Set, TYPE_CHECKING

from shared.logging import get_logger
from ..catalog.models import PlayTimeWindow, SongRow
from .names import RequesterNameResolver

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..catalog.store import CatalogStore
    from ..domain.params import QueryParameters


DISPLAY_FORMAT = "%Y-%m-%d %H:%M"


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Format a timestamp for display."""
    if value is None:
        return None
    return value.strftime(DISPLAY_FORMAT)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _created_at(record: Mapping[str, Any]) -> datetime:
    value = record.get("createdAt")
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def sort_by_votes(songs: List[Dict[str, Any]], sort_order: str) -> List[Dict[str, Any]]:
    """Order composed songs by vote count; ties go to the earlier request."""
    sign = 1 if sort_order == "asc" else -1
    return sorted(songs, key=lambda song: (sign * song.get("voteCount", 0), _created_at(song)))


def narrow_by_scheduled(songs: List[Dict[str, Any]], scheduled: Optional[bool]) -> List[Dict[str, Any]]:
    """Keep songs whose schedule state matches; unset keeps everything."""
    if scheduled is None:
        return songs
    return [song for song in songs if bool(song.get("scheduled")) is scheduled]


@dataclass
class AggregationResult:
    """Composed page plus the store-level total it was cut from."""

    songs: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    scheduled: Optional[bool] = None

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def narrowed_songs(self) -> List[Dict[str, Any]]:
        """Page narrowed by the scheduled flag. Totals are not recomputed."""
        return narrow_by_scheduled(self.songs, self.scheduled)

    def to_cache_payload(self) -> Dict[str, Any]:
        """Base result set as written to the shared cache."""
        return {
            "songs": self.songs,
            "total": self.total,
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "totalPages": self.total_pages,
            },
        }


class AggregationEngine:
    """Runs the store queries for a listing page and composes the output records."""

    def __init__(self, store: "CatalogStore", *, metrics: Optional["MetricsCollector"] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("songs.aggregation")

    async def aggregate(self, params: "QueryParameters") -> AggregationResult:
        """Build the base result set for a request that missed the cache."""
        if self.metrics:
            with self.metrics.time_operation("aggregation_duration_seconds"):
                return await self._aggregate(params)
        return await self._aggregate(params)

    async def _aggregate(self, params: "QueryParameters") -> AggregationResult:
        filters = params.store_filter()

        total = await self.store.count_songs(filters)
        rows = await self.store.fetch_song_page(
            filters, params.sort_by, params.sort_order, params.limit, params.offset
        )

        song_ids = [row.id for row in rows]
        vote_counts = await self.store.fetch_vote_counts(song_ids) if song_ids else {}
        scheduled_ids = await self.store.fetch_scheduled_song_ids(song_ids) if song_ids else set()
        play_times = {window.id: window for window in await self.store.fetch_play_times()}
        names = RequesterNameResolver(await self.store.fetch_requesters())

        songs = [
            self.compose_song(row, vote_counts, scheduled_ids, play_times, names)
            for row in rows
        ]

        if params.sort_by == "votes":
            songs = sort_by_votes(songs, params.sort_order)

        self.logger.debug(
            "Aggregated song page",
            total=total,
            page=params.page,
            limit=params.limit,
            fetched=len(songs),
        )

        return AggregationResult(
            songs=songs,
            total=total,
            page=params.page,
            limit=params.limit,
            scheduled=params.scheduled,
        )

    @staticmethod
    def compose_song(
        row: SongRow,
        vote_counts: Mapping[int, int],
        scheduled_ids: Set[int],
        play_times: Mapping[int, PlayTimeWindow],
        names: RequesterNameResolver,
    ) -> Dict[str, Any]:
        song: Dict[str, Any] = {
            "id": row.id,
            "title": row.title,
            "artist": row.artist,
            "requester": names.display_name(row.requester),
            "requesterId": row.requester.id if row.requester else None,
            "voteCount": vote_counts.get(row.id, 0),
            "played": row.played,
            "playedAt": _isoformat(row.played_at),
            "playedAtFormatted": format_datetime(row.played_at),
            "semester": row.semester,
            "createdAt": _isoformat(row.created_at),
            "updatedAt": _isoformat(row.updated_at),
            "requestedAt": format_datetime(row.created_at),
            "scheduled": row.id in scheduled_ids,
            "cover": row.cover or None,
            "musicPlatform": row.music_platform or None,
            "musicId": row.music_id or None,
            "playUrl": row.play_url or None,
            "preferredPlayTimeId": row.preferred_play_time_id,
        }

        if row.preferred_play_time_id:
            window = play_times.get(row.preferred_play_time_id)
            if window is not None:
                song["preferredPlayTime"] = window.to_dict()

        return song
