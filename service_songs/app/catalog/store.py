"""
PostgreSQL catalog store for the song listing.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

import asyncpg

from shared.logging import get_logger
from shared.errors import SongsAccessException
from shared.retry import ErrorClassifier, is_transient_connectivity_error, with_transient_retry
from .models import PlayTimeWindow, Requester, SongFilter, SongRow


# Listing sort fields backed by a real column. Anything else (including
# "votes") is ordered by creation time at the store.
SORTABLE_COLUMNS: Dict[str, str] = {
    "createdAt": '"createdAt"',
    "title": "title",
    "artist": "artist",
    "playedAt": '"playedAt"',
}

_SONG_COLUMNS = """
    s.id, s.title, s.artist, s.played, s."playedAt", s.semester,
    s."createdAt", s."updatedAt", s.cover, s."musicPlatform", s."musicId",
    s."playUrl", s."preferredPlayTimeId",
    u.id AS requester_id, u.name AS requester_name,
    u.grade AS requester_grade, u.class AS requester_class
"""


class CatalogStore:
    """Read-only access to songs, users, votes, schedules and play times."""

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30.0,
        retry_delay: float = 1.0,
        is_transient: ErrorClassifier = is_transient_connectivity_error,
        on_retry: Optional[Callable[[str, BaseException], None]] = None,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("songs.catalog.store")
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_task: Optional[asyncio.Task] = None

        self._fetch = with_transient_retry(
            self._fetch_once, delay=retry_delay, is_transient=is_transient, on_retry=on_retry
        )
        self._fetchval = with_transient_retry(
            self._fetchval_once, delay=retry_delay, is_transient=is_transient, on_retry=on_retry
        )

    async def start(self):
        """Open the connection pool at service startup."""
        try:
            await self._get_pool()
        except Exception as e:
            self.logger.error("Failed to start catalog store", error=str(e))
            raise SongsAccessException("POSTGRES_START_FAILED", str(e), status_code=503) from e

    async def _open_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout
        )
        self.logger.info("Catalog store started")
        return pool

    async def _get_pool(self) -> asyncpg.Pool:
        """Return the pool, opening it on first use.

        Concurrent callers share one in-flight open. A failed open raises the
        driver error unchanged and the next call tries again.
        """
        if self.pool is not None:
            return self.pool

        if self._pool_task is None:
            self._pool_task = asyncio.ensure_future(self._open_pool())
        task = self._pool_task

        try:
            pool = await asyncio.shield(task)
        finally:
            if task.done() and self._pool_task is task:
                self._pool_task = None

        if self.pool is None:
            self.pool = pool
        return self.pool

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("Catalog store stopped")

    async def _fetch_once(self, query: str, *args) -> List[Dict[str, Any]]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(query, *args)
            return [dict(row) for row in rows]

    async def _fetchval_once(self, query: str, *args) -> Any:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    @staticmethod
    def build_where(filters: SongFilter) -> Tuple[str, List[Any]]:
        """Build the conjunctive WHERE clause and its positional arguments."""
        clauses: List[str] = []
        args: List[Any] = []

        if filters.search:
            args.append(f"%{filters.search}%")
            placeholder = f"${len(args)}"
            clauses.append(f"(s.title LIKE {placeholder} OR s.artist LIKE {placeholder})")

        if filters.semester:
            args.append(filters.semester)
            clauses.append(f"s.semester = ${len(args)}")

        if filters.grade:
            args.append(filters.grade)
            clauses.append(f"u.grade = ${len(args)}")

        if filters.played is not None:
            args.append(filters.played)
            clauses.append(f"s.played = ${len(args)}")

        if not clauses:
            return "", args
        return "WHERE " + " AND ".join(clauses), args

    @staticmethod
    def build_order_by(sort_field: str, sort_order: str) -> str:
        """Translate a listing sort into an ORDER BY clause."""
        column = SORTABLE_COLUMNS.get(sort_field)
        if column is None:
            return 'ORDER BY s."createdAt" DESC'
        direction = "ASC" if sort_order == "asc" else "DESC"
        return f"ORDER BY s.{column} {direction}"

    async def count_songs(self, filters: SongFilter) -> int:
        """Count songs matching the filter."""
        where, args = self.build_where(filters)
        total = await self._fetchval(f"""
            SELECT COUNT(*) FROM "Song" s
            LEFT JOIN "User" u ON s."requesterId" = u.id
            {where}
        """, *args)
        return int(total or 0)

    async def fetch_song_page(
        self,
        filters: SongFilter,
        sort_field: str,
        sort_order: str,
        limit: int,
        offset: int,
    ) -> List[SongRow]:
        """Fetch one ordered page of songs joined with their requester."""
        where, args = self.build_where(filters)
        args.extend([limit, offset])
        rows = await self._fetch(f"""
            SELECT {_SONG_COLUMNS}
            FROM "Song" s
            LEFT JOIN "User" u ON s."requesterId" = u.id
            {where}
            {self.build_order_by(sort_field, sort_order)}
            LIMIT ${len(args) - 1} OFFSET ${len(args)}
        """, *args)
        return [SongRow.from_record(row) for row in rows]

    async def fetch_vote_counts(self, song_ids: Sequence[int]) -> Dict[int, int]:
        """Count votes per song, restricted to the given ids."""
        if not song_ids:
            return {}
        rows = await self._fetch("""
            SELECT "songId", COUNT(id) AS count
            FROM "Vote"
            WHERE "songId" = ANY($1::int[])
            GROUP BY "songId"
        """, list(song_ids))
        return {row["songId"]: int(row["count"]) for row in rows}

    async def fetch_scheduled_song_ids(self, song_ids: Sequence[int]) -> Set[int]:
        """Return ids among the given songs with at least one published schedule."""
        if not song_ids:
            return set()
        rows = await self._fetch("""
            SELECT DISTINCT "songId"
            FROM "Schedule"
            WHERE "songId" = ANY($1::int[]) AND "isDraft" = FALSE
        """, list(song_ids))
        return {row["songId"] for row in rows}

    async def fetch_play_times(self) -> List[PlayTimeWindow]:
        """Load every play-time window."""
        rows = await self._fetch("""
            SELECT id, name, "startTime", "endTime", enabled FROM "PlayTime"
        """)
        return [PlayTimeWindow.from_record(row) for row in rows]

    async def fetch_requesters(self) -> List[Requester]:
        """Load every user's display fields."""
        rows = await self._fetch("""
            SELECT id, name, grade, class FROM "User"
        """)
        return [Requester.from_record(row) for row in rows]

    async def ping(self) -> None:
        """Issue a trivial liveness query. Raises on failure."""
        await self._fetchval("SELECT 1 AS health_check")

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            await self.ping()
            return True
        except Exception:
            return False
