"""Live, cadence-aware replacement of placed tracks."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from loguru import logger

from spinsync.music.model import TempoInfo, Track
from spinsync.playlist.model import Fallback, FallbackKind, GeneratedPlaylist
from spinsync.playlist.tempo import (
    DEFAULT_MATCHING,
    MatchingConfig,
    matched_harmonic,
    rank_tracks,
    tempo_for,
)


@dataclass(frozen=True)
class Substitution:
    track: Track
    tempo_bpm: float | None
    cadence_rpm: int | None
    duplicate: bool = False
    harmonic: int | None = None


class TrackSubstitutor:
    """Round-robin substitution over per-cadence rankings of the whole pool.

    Rankings are built lazily and memoized per cadence. Each cadence keeps its
    own cursor so repeated requests walk the ranking in a stable cycle. One
    instance belongs to one playback session and is not safe for concurrent
    callers.
    """

    def __init__(
        self,
        tracks: Sequence[Track],
        tempo_info: TempoInfo,
        config: MatchingConfig = DEFAULT_MATCHING,
    ) -> None:
        self._tracks = tuple(tracks)
        self._tempo_info = tempo_info
        self._config = config
        self._rank_cache: dict[int, list[Track]] = {}
        self._cursors: dict[int, int] = {}
        self._round_robin_cursor = 0
        self._usage: Counter[str] = Counter()
        self._playlist_ids: set[str] = set()

    @classmethod
    def for_playlist(
        cls,
        playlist: GeneratedPlaylist,
        config: MatchingConfig = DEFAULT_MATCHING,
    ) -> TrackSubstitutor:
        substitutor = cls(playlist.source_tracks, playlist.tempo_info, config)
        substitutor.set_playlist_tracks(playlist.track_ids())
        return substitutor

    @property
    def playlist_track_ids(self) -> frozenset[str]:
        return frozenset(self._playlist_ids)

    def set_playlist_tracks(self, track_ids: Iterable[str]) -> None:
        self._playlist_ids = set(track_ids)
        logger.debug(f"Updated playlist tracks: {len(self._playlist_ids)} tracks in use")

    def substitute(self, current_track: Track, cadence: int | None) -> Substitution:
        if not self._tracks:
            logger.warning("No tracks available for substitution, keeping current track")
            return Substitution(
                track=current_track,
                tempo_bpm=tempo_for(current_track.id, self._tempo_info),
                cadence_rpm=cadence,
                duplicate=True,
            )

        if cadence is None:
            return self._next_round_robin(current_track)

        ranked = self._ranked_for(cadence)
        index = self._cursors.get(cadence, 0) % len(ranked)
        candidate = ranked[index]
        attempts = 0
        while self._is_taken(candidate, current_track) and attempts < len(ranked):
            index = (index + 1) % len(ranked)
            candidate = ranked[index]
            attempts += 1
            if candidate.id in self._playlist_ids:
                logger.debug(f"   Skipping '{candidate.name}' (already in playlist)")

        self._cursors[cadence] = (index + 1) % len(ranked)
        duplicate = self._is_taken(candidate, current_track)
        if duplicate:
            logger.warning(
                f"No unused track left for {cadence} RPM, accepting duplicate '{candidate.name}'"
            )

        self._usage[candidate.id] += 1
        tempo = tempo_for(candidate.id, self._tempo_info)
        harmonic = matched_harmonic(tempo, cadence, self._config)
        logger.info(
            f"Substituting '{current_track.name}' with '{candidate.name}' for {cadence} RPM"
        )
        if harmonic is not None:
            logger.debug(f"   {harmonic}x match: {tempo:g} BPM vs target {cadence * harmonic}")
        else:
            logger.debug(f"   No multiple match: {tempo} BPM vs cadence {cadence}")

        return Substitution(
            track=candidate,
            tempo_bpm=tempo,
            cadence_rpm=cadence,
            duplicate=duplicate,
            harmonic=harmonic,
        )

    def replace_slot(self, playlist: GeneratedPlaylist, index: int) -> Substitution:
        """Substitute the track of ``playlist.slots[index]`` in place.

        Offsets are untouched. The live track set is refreshed from the
        playlist afterwards.
        """
        if index < 0 or index >= len(playlist.slots):
            raise IndexError(f"Invalid slot index: {index}")

        slot = playlist.slots[index]
        self.set_playlist_tracks(playlist.track_ids())
        result = self.substitute(slot.track, slot.cadence_rpm)

        slot.track = result.track
        slot.tempo_bpm = result.tempo_bpm
        slot.clip_start = 0
        slot.clip_end = min(slot.duration_sec, result.track.duration_sec)
        slot.alternatives = self._alternatives_for(slot.cadence_rpm, exclude=result.track)
        if result.track.duration_sec < slot.duration_sec:
            logger.warning(
                f"'{result.track.name}' ends {slot.duration_sec - result.track.duration_sec}s "
                f"before slot {index + 1} does"
            )
        if result.duplicate:
            playlist.fallbacks.append(
                Fallback(
                    kind=FallbackKind.DUPLICATE_ACCEPTED,
                    message=f"Slot {index + 1} reuses '{result.track.name}', no unused match left",
                    block_index=slot.block_index,
                    track_id=result.track.id,
                )
            )

        self.set_playlist_tracks(playlist.track_ids())
        return result

    def stats(self) -> dict[str, object]:
        most_used = self._usage.most_common(1)
        return {
            "total_substitutions": sum(self._usage.values()),
            "most_used": most_used[0] if most_used else None,
            "cached_cadences": sorted(self._rank_cache),
        }

    def reset(self) -> None:
        self._rank_cache.clear()
        self._cursors.clear()
        self._round_robin_cursor = 0
        self._usage.clear()
        logger.debug("Substitution state reset")

    def _is_taken(self, candidate: Track, current_track: Track) -> bool:
        return candidate.id == current_track.id or candidate.id in self._playlist_ids

    def _ranked_for(self, cadence: int) -> list[Track]:
        cached = self._rank_cache.get(cadence)
        if cached is not None:
            return cached

        logger.debug(f"Sorting {len(self._tracks)} tracks for cadence {cadence} RPM")
        ranked = [
            track for track, _score in rank_tracks(
                self._tracks, self._tempo_info, cadence, self._config
            )
        ]
        for position, track in enumerate(ranked[:5], start=1):
            logger.debug(
                f"   {position}. {track.name} - "
                f"{tempo_for(track.id, self._tempo_info)} BPM"
            )
        self._rank_cache[cadence] = ranked
        return ranked

    def _next_round_robin(self, current_track: Track) -> Substitution:
        index = self._round_robin_cursor % len(self._tracks)
        candidate = self._tracks[index]
        self._round_robin_cursor = (index + 1) % len(self._tracks)
        self._usage[candidate.id] += 1
        logger.info(f"Substituting '{current_track.name}' with '{candidate.name}' (no cadence)")
        return Substitution(
            track=candidate,
            tempo_bpm=tempo_for(candidate.id, self._tempo_info),
            cadence_rpm=None,
            duplicate=self._is_taken(candidate, current_track),
        )

    def _alternatives_for(self, cadence: int | None, *, exclude: Track) -> tuple[Track, ...]:
        pool = self._ranked_for(cadence) if cadence is not None else list(self._tracks)
        out = [
            track
            for track in pool
            if track.id != exclude.id and track.id not in self._playlist_ids
        ]
        return tuple(out[: self._config.max_alternatives])
