from __future__ import annotations

import random
from typing import Sequence, TypeVar

import pytest

from spinsync.music.model import Track
from spinsync.playlist.allocation import (
    PlaylistAllocator,
    PlaylistGenerationError,
    generate_playlist,
)
from spinsync.playlist.model import FallbackKind, GeneratedPlaylist
from spinsync.workout.model import Workout, WorkoutBlock

T = TypeVar("T")


class FirstChoice(random.Random):
    def choice(self, seq: Sequence[T]) -> T:
        return seq[0]


class LastChoice(random.Random):
    def choice(self, seq: Sequence[T]) -> T:
        return seq[-1]


def _track(track_id: str, duration_sec: int) -> Track:
    return Track(
        id=track_id,
        name=f"Song {track_id}",
        duration_sec=duration_sec,
        uri=f"spotify:track:{track_id}",
    )


def _assert_gapless(playlist: GeneratedPlaylist) -> None:
    cursor = 0
    for slot in playlist.slots:
        assert slot.start_sec == cursor
        assert slot.end_sec > slot.start_sec
        assert slot.duration_sec <= slot.track.duration_sec
        cursor = slot.end_sec
    assert cursor == playlist.total_duration_sec
    assert playlist.gaps() == []


def test_single_block_fills_with_two_whole_tracks() -> None:
    workout = Workout(name="One block", blocks=(WorkoutBlock(60, cadence_rpm=80),))
    tracks = [_track(f"t{i}", 30) for i in range(5)]
    tempo_info = {track.id: 80.0 for track in tracks}

    playlist = generate_playlist(workout, tracks, tempo_info, rng=random.Random(1))

    assert len(playlist.slots) == 2
    assert not any(slot.is_clipped for slot in playlist.slots)
    assert [(s.start_sec, s.end_sec) for s in playlist.slots] == [(0, 30), (30, 60)]
    assert playlist.slots[0].track.id != playlist.slots[1].track.id
    assert playlist.slots[0].tempo_bpm == 80.0
    _assert_gapless(playlist)


def test_long_track_is_clipped_to_block_remainder() -> None:
    workout = Workout(name="Short", blocks=(WorkoutBlock(40),))
    track = _track("long", 70)

    playlist = generate_playlist(workout, [track], {})

    assert len(playlist.slots) == 1
    slot = playlist.slots[0]
    assert slot.is_clipped
    assert slot.duration_sec == 40
    assert slot.clip_start == 0
    assert slot.clip_end == 40
    assert not playlist.fallbacks


def test_remainder_below_minimum_clip_is_left_silent() -> None:
    workout = Workout(name="Gap", blocks=(WorkoutBlock(70), WorkoutBlock(60)))
    tracks = [_track("a", 60)]

    playlist = generate_playlist(workout, tracks, {})

    assert playlist.gaps() == [(60, 70)]
    gaps = playlist.fallbacks_of(FallbackKind.UNFILLED_GAP)
    assert len(gaps) == 1
    assert gaps[0].block_index == 0
    # The next block still starts at its absolute offset.
    assert playlist.slots[-1].start_sec == 70
    assert playlist.slots[-1].end_sec == 130


def test_tracks_are_not_repeated_across_blocks_when_pool_allows() -> None:
    workout = Workout(
        name="Intervals",
        blocks=(
            WorkoutBlock(300, cadence_rpm=85),
            WorkoutBlock(120, cadence_rpm=100),
            WorkoutBlock(120, cadence_rpm=85),
            WorkoutBlock(120),
        ),
    )
    tracks = [_track(f"t{i}", 150 + 10 * i) for i in range(20)]
    tempo_info = {track.id: float(80 + i * 3) for i, track in enumerate(tracks)}

    playlist = generate_playlist(workout, tracks, tempo_info, rng=random.Random(42))

    _assert_gapless(playlist)
    ids = [slot.track.id for slot in playlist.slots]
    assert len(ids) == len(set(ids))
    assert not playlist.fallbacks_of(FallbackKind.POOL_REUSE)


def test_slot_offsets_are_workout_global_and_respect_blocks() -> None:
    workout = Workout(
        name="Blocks",
        blocks=(WorkoutBlock(100, cadence_rpm=90), WorkoutBlock(100, cadence_rpm=60)),
    )
    tracks = [_track(f"t{i}", 50) for i in range(10)]
    tempo_info = {track.id: 90.0 if i < 5 else 120.0 for i, track in enumerate(tracks)}

    playlist = generate_playlist(workout, tracks, tempo_info, rng=random.Random(3))

    _assert_gapless(playlist)
    for block_index, (start, block) in enumerate(workout.block_offsets()):
        spans = [s for s in playlist.slots if s.block_index == block_index]
        assert spans[0].start_sec == start
        assert spans[-1].end_sec == start + block.duration_sec
        assert sum(s.duration_sec for s in spans) == block.duration_sec
    # 120 BPM is a 2x match for 60 RPM, so the second block uses those tracks.
    assert all(s.tempo_bpm == 120.0 for s in playlist.slots if s.block_index == 1)


def test_pool_exhaustion_reuses_tracks_instead_of_failing() -> None:
    workout = Workout(
        name="Five blocks",
        blocks=tuple(WorkoutBlock(60, cadence_rpm=90) for _ in range(5)),
    )
    tracks = [_track(f"t{i}", 60) for i in range(3)]
    tempo_info = {track.id: 90.0 for track in tracks}

    playlist = generate_playlist(workout, tracks, tempo_info, rng=random.Random(5))

    assert len(playlist.slots) == 5
    _assert_gapless(playlist)
    assert playlist.is_degraded
    assert len(playlist.fallbacks_of(FallbackKind.POOL_REUSE)) == 2


def test_single_block_longer_than_pool_cycles_through_pool() -> None:
    workout = Workout(name="Long", blocks=(WorkoutBlock(300, cadence_rpm=90),))
    tracks = [_track(f"t{i}", 60) for i in range(2)]
    tempo_info = {track.id: 90.0 for track in tracks}

    playlist = generate_playlist(workout, tracks, tempo_info, rng=random.Random(0))

    _assert_gapless(playlist)
    ids = [slot.track.id for slot in playlist.slots]
    assert all(a != b for a, b in zip(ids, ids[1:]))
    assert playlist.fallbacks_of(FallbackKind.POOL_REUSE)


def test_good_enough_set_is_sampled_instead_of_best_match() -> None:
    workout = Workout(name="Pick", blocks=(WorkoutBlock(60, cadence_rpm=80),))
    tracks = [_track("exact", 60), _track("close", 60), _track("near", 60), _track("off", 60)]
    tempo_info = {"exact": 80.0, "close": 82.0, "near": 84.0, "off": 120.0}

    first = PlaylistAllocator(rng=FirstChoice()).generate(workout, tracks, tempo_info)
    last = PlaylistAllocator(rng=LastChoice()).generate(workout, tracks, tempo_info)

    assert first.slots[0].track.id == "exact"
    # "off" scores 40 (2x match) and is outside the 5-point margin.
    assert last.slots[0].track.id == "near"


def test_alternatives_exclude_placed_track() -> None:
    workout = Workout(name="Alt", blocks=(WorkoutBlock(120, cadence_rpm=90),))
    tracks = [_track(f"t{i}", 60) for i in range(6)]
    tempo_info = {track.id: 90.0 + i for i, track in enumerate(tracks)}

    playlist = generate_playlist(workout, tracks, tempo_info, rng=FirstChoice())

    for slot in playlist.slots:
        assert 0 < len(slot.alternatives) <= 3
        assert slot.track.id not in {track.id for track in slot.alternatives}
    assert [t.id for t in playlist.slots[0].alternatives] == ["t1", "t2", "t3"]


def test_missing_tempo_and_no_match_are_reported() -> None:
    workout = Workout(name="Degraded", blocks=(WorkoutBlock(60, cadence_rpm=90),))
    tracks = [_track("unknown", 60)]

    playlist = generate_playlist(workout, tracks, {"unknown": -1.0})

    kinds = {item.kind for item in playlist.fallbacks}
    assert FallbackKind.MISSING_TEMPO in kinds
    assert FallbackKind.NO_CADENCE_MATCH in kinds
    assert playlist.slots[0].tempo_bpm is None


def test_seeded_generation_is_reproducible() -> None:
    workout = Workout(
        name="Seeded",
        blocks=(WorkoutBlock(600, cadence_rpm=90), WorkoutBlock(300)),
    )
    tracks = [_track(f"t{i}", 120 + i) for i in range(30)]
    tempo_info = {track.id: 88.0 + (i % 5) for i, track in enumerate(tracks)}

    a = generate_playlist(workout, tracks, tempo_info, rng=random.Random(11))
    b = generate_playlist(workout, tracks, tempo_info, rng=random.Random(11))

    assert [s.track.id for s in a.slots] == [s.track.id for s in b.slots]


def test_empty_pool_yields_silent_playlist() -> None:
    workout = Workout(name="Silent", blocks=(WorkoutBlock(60), WorkoutBlock(60)))

    playlist = generate_playlist(workout, [], {})

    assert playlist.slots == []
    assert len(playlist.fallbacks_of(FallbackKind.UNFILLED_GAP)) == 2
    assert playlist.gaps() == [(0, 120)]


def test_malformed_workouts_are_rejected() -> None:
    tracks = [_track("a", 60)]
    with pytest.raises(PlaylistGenerationError):
        generate_playlist(Workout(name="Empty", blocks=()), tracks, {})
    with pytest.raises(PlaylistGenerationError):
        generate_playlist(Workout(name="Zero", blocks=(WorkoutBlock(0),)), tracks, {})
    with pytest.raises(PlaylistGenerationError):
        generate_playlist(Workout(name="Neg", blocks=(WorkoutBlock(-30),)), tracks, {})


def test_zero_length_tracks_are_never_placed() -> None:
    workout = Workout(name="Zero", blocks=(WorkoutBlock(60),))
    tracks = [_track("empty", 0), _track("ok", 60)]

    playlist = generate_playlist(workout, tracks, {})

    assert [slot.track.id for slot in playlist.slots] == ["ok"]
    assert [track.id for track in playlist.source_tracks] == ["ok"]
    _assert_gapless(playlist)


def test_pool_of_only_zero_length_tracks_is_silent() -> None:
    workout = Workout(name="Zero", blocks=(WorkoutBlock(60),))

    playlist = generate_playlist(workout, [_track("z", 0)], {})

    assert playlist.slots == []
    assert playlist.gaps() == [(0, 60)]
    assert playlist.fallbacks_of(FallbackKind.UNFILLED_GAP)


def test_no_match_is_reported_when_matching_tracks_were_used_earlier() -> None:
    workout = Workout(
        name="Used up",
        blocks=(WorkoutBlock(60, cadence_rpm=90), WorkoutBlock(60, cadence_rpm=90)),
    )
    tracks = [_track("a", 60), _track("b", 60)]

    playlist = generate_playlist(workout, tracks, {"a": 90.0, "b": 120.0})

    assert [slot.track.id for slot in playlist.slots] == ["a", "b"]
    no_match = playlist.fallbacks_of(FallbackKind.NO_CADENCE_MATCH)
    assert [item.block_index for item in no_match] == [1]
