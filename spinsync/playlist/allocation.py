"""Fill workout blocks with tempo-matched tracks."""

from __future__ import annotations

import random
from collections.abc import Sequence

from loguru import logger

from spinsync.music.model import TempoInfo, Track
from spinsync.playlist.model import Fallback, FallbackKind, GeneratedPlaylist, PlaylistSlot
from spinsync.playlist.tempo import (
    DEFAULT_MATCHING,
    MatchingConfig,
    is_harmonic_match,
    rank_tracks,
    tempo_for,
)
from spinsync.workout.model import Workout, WorkoutBlock

Candidate = tuple[Track, float]


class PlaylistGenerationError(ValueError):
    """Raised when a workout is structurally unusable for generation."""


class PlaylistAllocator:
    """Greedy, randomized-within-tolerance allocation of tracks to blocks.

    Each block ranks the whole pool against its cadence, drops tracks already
    placed in earlier blocks, then repeatedly draws a random track among the
    "good enough" candidates (within ``good_enough_margin`` of the best
    remaining score) until the block time is filled. The last track of a
    block is clipped when it overruns and at least ``min_clip_sec`` remain.

    Pass a seeded ``random.Random`` (or any object with a compatible
    ``choice``) for reproducible output.
    """

    def __init__(
        self,
        config: MatchingConfig = DEFAULT_MATCHING,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config
        self._rng = rng or random.Random()

    def generate(
        self,
        workout: Workout,
        tracks: Sequence[Track],
        tempo_info: TempoInfo,
    ) -> GeneratedPlaylist:
        _validate_workout(workout)

        slots: list[PlaylistSlot] = []
        fallbacks: list[Fallback] = []
        used_ids: set[str] = set()

        playable = _playable_tracks(tracks)
        if not playable:
            logger.warning(f"Empty track pool, '{workout.name}' will be silent")

        for block_index, (block_start, block) in enumerate(workout.block_offsets()):
            logger.info(
                f"Block {block_index + 1}: {block.duration_sec}s, "
                f"cadence {block.cadence_rpm if block.cadence_rpm is not None else 'N/A'} RPM"
            )
            block_slots, block_fallbacks = self._fill_block(
                block_index=block_index,
                block=block,
                block_start=block_start,
                tracks=playable,
                tempo_info=tempo_info,
                used_ids=used_ids,
            )
            slots.extend(block_slots)
            fallbacks.extend(block_fallbacks)
            used_ids.update(slot.track.id for slot in block_slots)

        playlist = GeneratedPlaylist(
            workout_name=workout.name,
            slots=slots,
            total_duration_sec=workout.total_duration_sec,
            source_tracks=tuple(playable),
            tempo_info=dict(tempo_info),
            fallbacks=fallbacks,
        )
        logger.info(
            f"Generated {len(slots)} slots for '{workout.name}' "
            f"({playlist.total_duration_sec}s, {len(fallbacks)} fallbacks)"
        )
        return playlist

    def _fill_block(
        self,
        *,
        block_index: int,
        block: WorkoutBlock,
        block_start: int,
        tracks: Sequence[Track],
        tempo_info: TempoInfo,
        used_ids: set[str],
    ) -> tuple[list[PlaylistSlot], list[Fallback]]:
        cadence = block.cadence_rpm
        fallbacks: list[Fallback] = []

        ranked = rank_tracks(tracks, tempo_info, cadence, self._config)
        candidates = [item for item in ranked if item[0].id not in used_ids]
        if not candidates and ranked:
            logger.warning(
                f"Block {block_index + 1}: all {len(ranked)} tracks already used, allowing reuse"
            )
            candidates = list(ranked)

        if cadence is not None and candidates and not is_harmonic_match(
            candidates[0][1], self._config
        ):
            fallbacks.append(
                Fallback(
                    kind=FallbackKind.NO_CADENCE_MATCH,
                    message=f"No track tempo matches {cadence} RPM, using closest tempos",
                    block_index=block_index,
                )
            )
            logger.warning(f"Block {block_index + 1}: no harmonic match for {cadence} RPM")

        slots: list[PlaylistSlot] = []
        placed_ids: set[str] = set()
        remaining = block.duration_sec
        cursor = block_start
        pending = list(candidates)
        placed_this_pass = False

        while remaining > 0:
            if not pending:
                # Pool smaller than the block needs: cycle through it again.
                if not placed_this_pass or not ranked:
                    break
                last_id = slots[-1].track.id if slots else None
                pending = [item for item in ranked if item[0].id != last_id] or list(ranked)
                placed_this_pass = False

            track, track_score = pending.pop(self._pick(pending))

            if track.duration_sec <= remaining:
                length = track.duration_sec
            elif remaining >= self._config.min_clip_sec:
                length = remaining
            else:
                logger.debug(
                    f"   Skipping '{track.name}' ({track.duration_sec}s), "
                    f"only {remaining}s left"
                )
                continue

            if track.id in used_ids or track.id in placed_ids:
                fallbacks.append(
                    Fallback(
                        kind=FallbackKind.POOL_REUSE,
                        message=f"Reused '{track.name}', track pool exhausted",
                        block_index=block_index,
                        track_id=track.id,
                    )
                )
                logger.warning(f"Block {block_index + 1}: reusing '{track.name}'")

            tempo = tempo_for(track.id, tempo_info)
            if cadence is not None and tempo is None:
                fallbacks.append(
                    Fallback(
                        kind=FallbackKind.MISSING_TEMPO,
                        message=f"'{track.name}' has no tempo data",
                        block_index=block_index,
                        track_id=track.id,
                    )
                )

            slot = PlaylistSlot(
                track=track,
                start_sec=cursor,
                end_sec=cursor + length,
                block_index=block_index,
                cadence_rpm=cadence,
                tempo_bpm=tempo,
                clip_start=0,
                clip_end=length,
                alternatives=self._alternatives(track, candidates),
            )
            slots.append(slot)
            placed_ids.add(track.id)
            placed_this_pass = True
            cursor += length
            remaining -= length
            logger.debug(
                f"   Added{' (clipped)' if slot.is_clipped else ''}: '{track.name}' "
                f"{length}s, score {track_score:g}"
            )

        if remaining > 0:
            fallbacks.append(
                Fallback(
                    kind=FallbackKind.UNFILLED_GAP,
                    message=f"{remaining}s left silent at the end of block {block_index + 1}",
                    block_index=block_index,
                )
            )
            logger.warning(f"Block {block_index + 1}: {remaining}s could not be filled")

        logger.info(f"   Selected {len(slots)} tracks for block {block_index + 1}")
        return slots, fallbacks

    def _pick(self, pending: list[Candidate]) -> int:
        best = min(item[1] for item in pending)
        good_enough = [
            index
            for index, item in enumerate(pending)
            if item[1] <= best + self._config.good_enough_margin
        ]
        if not good_enough:
            good_enough = list(range(len(pending)))
        return self._rng.choice(good_enough)

    def _alternatives(self, track: Track, candidates: list[Candidate]) -> tuple[Track, ...]:
        out: list[Track] = []
        for candidate, _score in candidates:
            if candidate.id == track.id:
                continue
            out.append(candidate)
            if len(out) >= self._config.max_alternatives:
                break
        return tuple(out)


def _playable_tracks(tracks: Sequence[Track]) -> list[Track]:
    playable: list[Track] = []
    for track in tracks:
        if track.duration_sec <= 0:
            logger.warning(f"Dropping '{track.name}', duration {track.duration_sec}s is not playable")
            continue
        playable.append(track)
    return playable


def _validate_workout(workout: Workout) -> None:
    if not workout.blocks:
        raise PlaylistGenerationError(f"Workout '{workout.name}' has no blocks")
    for index, block in enumerate(workout.blocks):
        if block.duration_sec <= 0:
            raise PlaylistGenerationError(
                f"Block {index + 1}: duration_sec must be > 0 (got {block.duration_sec})"
            )
        if block.cadence_rpm is not None and block.cadence_rpm <= 0:
            raise PlaylistGenerationError(
                f"Block {index + 1}: cadence_rpm must be > 0 (got {block.cadence_rpm})"
            )


def generate_playlist(
    workout: Workout,
    tracks: Sequence[Track],
    tempo_info: TempoInfo,
    *,
    config: MatchingConfig = DEFAULT_MATCHING,
    rng: random.Random | None = None,
) -> GeneratedPlaylist:
    return PlaylistAllocator(config=config, rng=rng).generate(workout, tracks, tempo_info)
