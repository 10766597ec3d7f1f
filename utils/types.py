"""
Type definitions and common data structures for the Discord bot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

# Spot type that always sorts after every other type
LOW_PRIORITY_TYPE = "farm"


class SpotPriority(IntEnum):
    """Sort priority derived from a spot's type when it is ingested."""

    NORMAL = 0
    LOW = 1

    @classmethod
    def for_type(cls, spot_type: str) -> SpotPriority:
        return cls.LOW if spot_type == LOW_PRIORITY_TYPE else cls.NORMAL


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class PointRecord:
    """One spot returned by the catalog API."""

    id: str
    name: str
    x: Any
    y: Any
    type: str
    map: str
    server: str
    cave_damage: str = ""
    description: str = ""
    video_url: str = ""
    video_file: str = ""
    category: str = ""
    created_at: str | None = None
    updated_at: str | None = None
    priority: SpotPriority = field(default=SpotPriority.NORMAL, init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "priority", SpotPriority.for_type(self.type))

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> PointRecord:
        """Build a record from one element of the ``/spots`` JSON array."""
        return cls(
            id=_text(payload.get("id")),
            name=_text(payload.get("name")),
            x=payload.get("x"),
            y=payload.get("y"),
            type=_text(payload.get("type")),
            map=_text(payload.get("map")),
            server=_text(payload.get("server")),
            cave_damage=_text(payload.get("caveDamage")),
            description=_text(payload.get("description")),
            video_url=_text(payload.get("videoUrl")),
            video_file=_text(payload.get("videoFile")),
            category=_text(payload.get("category")),
            created_at=payload.get("createdAt"),
            updated_at=payload.get("updatedAt"),
        )

    @property
    def sort_key(self) -> tuple[int, str, str]:
        return (int(self.priority), self.type, self.name)


@dataclass(frozen=True)
class ChannelBinding:
    """The (server, map) pair a channel or thread mirrors."""

    server: str
    map: str

    def to_dict(self) -> dict[str, str]:
        return {"server": self.server, "map": self.map}

    @classmethod
    def from_dict(cls, data: Any) -> ChannelBinding | None:
        if not isinstance(data, dict):
            return None
        server = data.get("server")
        map_name = data.get("map")
        if not isinstance(server, str) or not isinstance(map_name, str):
            return None
        return cls(server=server, map=map_name)

    def __str__(self) -> str:
        return f"{self.server} - {self.map}"


@dataclass(frozen=True)
class RenderedAttachment:
    """Binary payload attached to a rendered message."""

    filename: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class RenderedMessage:
    """One message of a rendering, in emission order."""

    text: str
    attachment: RenderedAttachment | None = None


@dataclass(frozen=True)
class AttachmentResult:
    """Outcome of downloading a spot's video file."""

    ok: bool
    filename: str = ""
    data: bytes = field(default=b"", repr=False)
    error: str | None = None


@dataclass
class SyncOutcome:
    """Result of synchronizing one channel."""

    channel_id: int
    success: bool
    messages_sent: int = 0
    error: str | None = None


@dataclass
class FanOutSummary:
    """Aggregate of a guild-wide update."""

    outcomes: list[SyncOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)


@dataclass
class PopulateSummary:
    """Aggregate of a forum population run."""

    datasets_with_records: int = 0
    messages_sent: int = 0
    created_channel_ids: list[int] = field(default_factory=list)
    failed_datasets: list[str] = field(default_factory=list)
