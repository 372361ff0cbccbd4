"""Track domain models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

TempoInfo = Mapping[str, float | None]


@dataclass(frozen=True)
class Track:
    id: str
    name: str
    duration_sec: int
    uri: str
    artist: str | None = None

    @property
    def display_name(self) -> str:
        if self.artist:
            return f"{self.artist} - {self.name}"
        return self.name


@dataclass(frozen=True)
class TrackPool:
    tracks: tuple[Track, ...]
    tempo_info: dict[str, float | None]

    @property
    def track_ids(self) -> set[str]:
        return {track.id for track in self.tracks}
