"""
Row models returned by the catalog store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class Requester:
    """Read-only view of the user who requested a song."""

    id: int
    name: Optional[str] = None
    grade: Optional[str] = None
    class_name: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Requester":
        return cls(
            id=record["id"],
            name=record.get("name"),
            grade=record.get("grade"),
            class_name=record.get("class"),
        )


@dataclass(frozen=True)
class PlayTimeWindow:
    """Preferred play-time window reference row."""

    id: int
    name: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the window to the listing's sub-object shape."""
        return {
            "id": self.id,
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "enabled": self.enabled,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PlayTimeWindow":
        return cls(
            id=record["id"],
            name=record["name"],
            start_time=record.get("startTime"),
            end_time=record.get("endTime"),
            enabled=bool(record.get("enabled", True)),
        )


@dataclass(frozen=True)
class SongRow:
    """A song joined with its requester, as fetched for one listing page."""

    id: int
    title: str
    artist: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    played: bool = False
    played_at: Optional[datetime] = None
    semester: Optional[str] = None
    preferred_play_time_id: Optional[int] = None
    cover: Optional[str] = None
    music_platform: Optional[str] = None
    music_id: Optional[str] = None
    play_url: Optional[str] = None
    requester: Optional[Requester] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SongRow":
        """Build a row from the joined page query's column aliases."""
        requester = None
        if record.get("requester_id") is not None:
            requester = Requester(
                id=record["requester_id"],
                name=record.get("requester_name"),
                grade=record.get("requester_grade"),
                class_name=record.get("requester_class"),
            )

        return cls(
            id=record["id"],
            title=record["title"],
            artist=record["artist"],
            created_at=record["createdAt"],
            updated_at=record.get("updatedAt"),
            played=bool(record.get("played", False)),
            played_at=record.get("playedAt"),
            semester=record.get("semester"),
            preferred_play_time_id=record.get("preferredPlayTimeId"),
            cover=record.get("cover"),
            music_platform=record.get("musicPlatform"),
            music_id=record.get("musicId"),
            play_url=record.get("playUrl"),
            requester=requester,
        )


@dataclass(frozen=True)
class SongFilter:
    """Conjunctive store-level filter for the song listing."""

    search: str = ""
    semester: str = ""
    grade: str = ""
    played: Optional[bool] = None
