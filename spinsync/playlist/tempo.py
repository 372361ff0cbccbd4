"""Tempo-to-cadence match scoring (lower is better)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from spinsync.music.model import TempoInfo, Track


@dataclass(frozen=True)
class MatchingConfig:
    """Empirically chosen matching constants.

    ``tolerance_pct`` is applied per harmonic: a track matches multiplier ``m``
    when its tempo lies within ``tolerance * m`` of ``cadence * m``. Scores of
    non-matching tracks are pushed past every harmonic match by one of two
    penalty tiers, and tracks without tempo data get ``missing_tempo_score``.
    """

    tolerance_pct: int = 25
    harmonics: tuple[int, ...] = (1, 2, 3, 4)
    near_miss_penalty: int = 30000
    far_miss_penalty: int = 35000
    missing_tempo_score: int = 2**31 // 2 - 1
    good_enough_margin: float = 5.0
    min_clip_sec: int = 30
    max_alternatives: int = 3


DEFAULT_MATCHING = MatchingConfig()


def tempo_for(track_id: str, tempo_info: Mapping[str, float | None]) -> float | None:
    """Return the known tempo of a track, or None when it is missing or negative."""
    bpm = tempo_info.get(track_id)
    if bpm is None or bpm < 0:
        return None
    return bpm


def _tolerance(target_cadence: float, config: MatchingConfig) -> float:
    # Truncated like the integer percentage the constants were tuned against.
    return float(int(target_cadence * config.tolerance_pct / 100))


def matched_harmonic(
    track_tempo: float | None,
    target_cadence: float,
    config: MatchingConfig = DEFAULT_MATCHING,
) -> int | None:
    """Return the multiplier with the closest in-tolerance match, if any."""
    if track_tempo is None or track_tempo < 0:
        return None
    tolerance = _tolerance(target_cadence, config)
    best: tuple[float, int] | None = None
    for multiplier in config.harmonics:
        target_bpm = target_cadence * multiplier
        distance = abs(track_tempo - target_bpm)
        if distance <= tolerance * multiplier:
            if best is None or distance < best[0]:
                best = (distance, multiplier)
    return best[1] if best is not None else None


def score(
    track_tempo: float | None,
    target_cadence: float,
    config: MatchingConfig = DEFAULT_MATCHING,
) -> float:
    if track_tempo is None or track_tempo < 0:
        return float(config.missing_tempo_score)

    tolerance = _tolerance(target_cadence, config)
    best_distance: float | None = None
    for multiplier in config.harmonics:
        target_bpm = target_cadence * multiplier
        distance = abs(track_tempo - target_bpm)
        # No penalty for the multiplier: 150 BPM at 75 RPM is as good as 75 BPM.
        if distance <= tolerance * multiplier:
            if best_distance is None or distance < best_distance:
                best_distance = distance

    if best_distance is not None:
        return float(best_distance)

    near_low = int(target_cadence * 0.75)
    near_high = int(target_cadence * 1.25)
    offset = abs(track_tempo - target_cadence)
    if near_low <= track_tempo <= near_high:
        return offset + config.near_miss_penalty
    return offset + config.far_miss_penalty


def is_harmonic_match(score_value: float, config: MatchingConfig = DEFAULT_MATCHING) -> bool:
    """True when a score came from a harmonic match rather than a fallback tier."""
    return score_value < config.near_miss_penalty


def rank_tracks(
    tracks: Sequence[Track],
    tempo_info: TempoInfo,
    cadence: float | None,
    config: MatchingConfig = DEFAULT_MATCHING,
) -> list[tuple[Track, float]]:
    """Stable-sort tracks by score against ``cadence``.

    Without a cadence every track scores 0 and pool order is kept.
    """
    if cadence is None:
        return [(track, 0.0) for track in tracks]
    scored = [
        (track, score(tempo_for(track.id, tempo_info), cadence, config))
        for track in tracks
    ]
    scored.sort(key=lambda item: item[1])
    return scored
