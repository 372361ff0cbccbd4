"""Generated playlist models and fallback diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from spinsync.music.model import Track


class FallbackKind(str, Enum):
    MISSING_TEMPO = "missing_tempo"
    NO_CADENCE_MATCH = "no_cadence_match"
    POOL_REUSE = "pool_reuse"
    UNFILLED_GAP = "unfilled_gap"
    DUPLICATE_ACCEPTED = "duplicate_accepted"


@dataclass(frozen=True)
class Fallback:
    """A degraded decision the caller may want to surface as a warning."""

    kind: FallbackKind
    message: str
    block_index: int | None = None
    track_id: str | None = None


@dataclass
class PlaylistSlot:
    track: Track
    start_sec: int
    end_sec: int
    block_index: int
    cadence_rpm: int | None = None
    tempo_bpm: float | None = None
    clip_start: int = 0
    clip_end: int = 0
    alternatives: tuple[Track, ...] = ()

    def __post_init__(self) -> None:
        if not self.clip_end:
            self.clip_end = self.clip_start + self.duration_sec

    @property
    def duration_sec(self) -> int:
        return self.end_sec - self.start_sec

    @property
    def is_clipped(self) -> bool:
        return self.duration_sec < self.track.duration_sec


@dataclass
class GeneratedPlaylist:
    workout_name: str
    slots: list[PlaylistSlot]
    total_duration_sec: int
    source_tracks: tuple[Track, ...]
    tempo_info: dict[str, float | None]
    fallbacks: list[Fallback] = field(default_factory=list)

    def track_ids(self) -> set[str]:
        return {slot.track.id for slot in self.slots}

    @property
    def is_degraded(self) -> bool:
        return bool(self.fallbacks)

    def fallbacks_of(self, kind: FallbackKind) -> list[Fallback]:
        return [item for item in self.fallbacks if item.kind == kind]

    def gaps(self) -> list[tuple[int, int]]:
        """Return ``(start_sec, end_sec)`` spans not covered by any slot."""
        out: list[tuple[int, int]] = []
        cursor = 0
        for slot in self.slots:
            if slot.start_sec > cursor:
                out.append((cursor, slot.start_sec))
            cursor = max(cursor, slot.end_sec)
        if cursor < self.total_duration_sec:
            out.append((cursor, self.total_duration_sec))
        return out

    def slot_at(self, elapsed_sec: float) -> int | None:
        """Index of the slot playing at ``elapsed_sec``, or None inside a gap."""
        for index, slot in enumerate(self.slots):
            if slot.start_sec <= elapsed_sec < slot.end_sec:
                return index
        return None
