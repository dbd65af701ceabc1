"""
Unit tests for the song listing aggregation engine.
"""

import pytest
from datetime import datetime

import sys
import os
sys.path.append(os.path.dirname(__file__))
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from fakes import FakeCatalogStore, make_song
from service_songs.app.aggregation.engine import (
    AggregationEngine,
    format_datetime,
    narrow_by_scheduled,
    sort_by_votes,
)
from service_songs.app.domain.params import parse_query_parameters
from shared.metrics import MetricsCollector


USERS = [
    {"id": 1, "name": "张三", "grade": "高一", "class": "1班"},
    {"id": 2, "name": "张三", "grade": "高二", "class": "2班"},
    {"id": 3, "name": "李四", "grade": "高一", "class": "3班"},
]


class TestAggregationEngine:
    """Test cases for AggregationEngine."""

    @pytest.fixture
    def store(self):
        return FakeCatalogStore(
            songs=[
                make_song(1, title="A", minutes=0, requester_id=1),
                make_song(2, title="B", minutes=10, requester_id=3, preferredPlayTimeId=7),
            ],
            users=USERS,
            votes=[1, 1, 1, 2, 2, 2, 2, 2],
            schedules=[(1, True)],
            play_times=[{"id": 7, "name": "午休", "startTime": "12:00", "endTime": "12:30", "enabled": True}],
        )

    @pytest.fixture
    def engine(self, store):
        return AggregationEngine(store)

    @pytest.mark.asyncio
    async def test_votes_descending(self, engine):
        result = await engine.aggregate(parse_query_parameters({"sortBy": "votes", "sortOrder": "desc"}))

        assert [song["title"] for song in result.songs] == ["B", "A"]
        assert [song["voteCount"] for song in result.songs] == [5, 3]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_votes_ascending(self, engine):
        result = await engine.aggregate(parse_query_parameters({"sortBy": "votes", "sortOrder": "asc"}))
        assert [song["title"] for song in result.songs] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_draft_schedule_is_not_scheduled(self, engine):
        result = await engine.aggregate(parse_query_parameters({}))
        scheduled = {song["id"]: song["scheduled"] for song in result.songs}

        assert scheduled == {1: False, 2: False}

    @pytest.mark.asyncio
    async def test_published_schedule_is_scheduled(self, store, engine):
        store.schedules.append((2, False))

        result = await engine.aggregate(parse_query_parameters({}))
        scheduled = {song["id"]: song["scheduled"] for song in result.songs}

        assert scheduled == {1: False, 2: True}

    @pytest.mark.asyncio
    async def test_composed_record(self, engine):
        result = await engine.aggregate(parse_query_parameters({}))
        song_b, song_a = result.songs

        assert song_a["requester"] == "张三（高一）"
        assert song_a["requesterId"] == 1
        assert song_a["requestedAt"] == "2024-03-01 08:00"
        assert song_a["createdAt"] == "2024-03-01T08:00:00"
        assert song_a["playedAt"] is None
        assert song_a["playedAtFormatted"] is None
        assert "preferredPlayTime" not in song_a

        assert song_b["requester"] == "李四"
        assert song_b["preferredPlayTimeId"] == 7
        assert song_b["preferredPlayTime"] == {
            "id": 7, "name": "午休", "startTime": "12:00", "endTime": "12:30", "enabled": True,
        }

    @pytest.mark.asyncio
    async def test_unknown_requester(self, store, engine):
        store.songs.append(make_song(3, minutes=20, requester_id=None))

        result = await engine.aggregate(parse_query_parameters({}))
        assert result.songs[0]["requester"] == "未知用户"
        assert result.songs[0]["requesterId"] is None

    @pytest.mark.asyncio
    async def test_missing_play_time_is_omitted(self, store, engine):
        store.play_times.clear()

        result = await engine.aggregate(parse_query_parameters({}))
        assert all("preferredPlayTime" not in song for song in result.songs)

    @pytest.mark.asyncio
    async def test_vote_sort_is_page_local(self, store, engine):
        store.songs = [make_song(i, minutes=i) for i in range(1, 5)]
        # The oldest song has the most votes but sits on page 2 by createdAt.
        store.votes = [1] * 10 + [4]

        result = await engine.aggregate(
            parse_query_parameters({"sortBy": "votes", "limit": "2", "page": "1"})
        )

        assert [song["id"] for song in result.songs] == [4, 3]
        assert result.total == 4
        assert result.total_pages == 2

    @pytest.mark.asyncio
    async def test_scheduled_filter_keeps_total(self, store, engine):
        store.schedules.append((2, False))

        result = await engine.aggregate(parse_query_parameters({"scheduled": "true"}))

        assert [song["id"] for song in result.narrowed_songs()] == [2]
        assert len(result.songs) == 2
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_empty_page_skips_per_song_queries(self, store, engine):
        result = await engine.aggregate(parse_query_parameters({"page": "5"}))

        assert result.songs == []
        assert result.total == 2
        assert store.calls["fetch_vote_counts"] == 0
        assert store.calls["fetch_scheduled_song_ids"] == 0

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, store, engine):
        store.fail_with = RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await engine.aggregate(parse_query_parameters({}))

    @pytest.mark.asyncio
    async def test_duration_is_recorded(self, store):
        metrics = MetricsCollector("songs-test")
        engine = AggregationEngine(store, metrics=metrics)

        await engine.aggregate(parse_query_parameters({}))

        count = metrics.registry.get_sample_value("aggregation_duration_seconds_count")
        assert count == 1

    def test_cache_payload_shape(self):
        from service_songs.app.aggregation.engine import AggregationResult

        result = AggregationResult(songs=[{"id": 1}], total=41, page=2, limit=20)

        assert result.to_cache_payload() == {
            "songs": [{"id": 1}],
            "total": 41,
            "pagination": {"page": 2, "limit": 20, "totalPages": 3},
        }


class TestSortingHelpers:
    """Test cases for the vote sort and schedule narrowing helpers."""

    def test_vote_ties_go_to_earlier_request(self):
        songs = [
            {"id": 1, "voteCount": 2, "createdAt": "2024-03-01T09:00:00"},
            {"id": 2, "voteCount": 2, "createdAt": "2024-03-01T08:00:00"},
            {"id": 3, "voteCount": 5, "createdAt": "2024-03-01T10:00:00"},
        ]

        assert [s["id"] for s in sort_by_votes(songs, "desc")] == [3, 2, 1]
        assert [s["id"] for s in sort_by_votes(songs, "asc")] == [2, 1, 3]

    def test_narrow_by_scheduled(self):
        songs = [{"id": 1, "scheduled": True}, {"id": 2, "scheduled": False}]

        assert narrow_by_scheduled(songs, None) == songs
        assert narrow_by_scheduled(songs, True) == [songs[0]]
        assert narrow_by_scheduled(songs, False) == [songs[1]]

    def test_format_datetime(self):
        assert format_datetime(datetime(2024, 5, 6, 7, 8, 9)) == "2024-05-06 07:08"
        assert format_datetime(None) is None
