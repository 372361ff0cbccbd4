"""Terminal CLI entrypoint for SpinSync."""

from __future__ import annotations

import argparse
import asyncio
import random
from pathlib import Path

from loguru import logger

from spinsync.core.logger import setup_logger
from spinsync.core.settings import Settings
from spinsync.music.catalog import load_tempo_info, load_tracks
from spinsync.music.model import TrackPool
from spinsync.music.tempo_cache import TempoCache
from spinsync.playback.player import SimulatedPlayer
from spinsync.playback.runner import PlaybackProgress
from spinsync.playback.session import PlaybackSession
from spinsync.playlist.allocation import PlaylistAllocator
from spinsync.playlist.export import export_playlist_csv, save_playlist_json
from spinsync.playlist.model import GeneratedPlaylist
from spinsync.workout.library import build_workout_from_template, list_templates
from spinsync.workout.model import Workout
from spinsync.workout.parser import load_workout


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build a cadence-matched playlist for an interval workout"
    )
    parser.add_argument(
        "--list-templates",
        action="store_true",
        help="List built-in workout templates",
    )
    parser.add_argument("--workout", type=Path, help="Workout file (.json, .csv or .zwo)")
    parser.add_argument("--template", help="Built-in workout template key")
    parser.add_argument("--tracks", type=Path, help="Track pool file (.json or .csv)")
    parser.add_argument(
        "--tempo",
        type=Path,
        default=None,
        help="JSON map of track id -> bpm, merged over the track file",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not read or update the local tempo cache",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible playlists")
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write the playlist to a .json or .csv file",
    )
    parser.add_argument(
        "--simulate-playback",
        action="store_true",
        help="Play the playlist against a simulated player",
    )
    parser.add_argument(
        "--time-scale",
        type=float,
        default=60.0,
        help="Workout seconds per real second for --simulate-playback",
    )
    parser.add_argument("--log-level", default=None, help="Override SPINSYNC_LOG_LEVEL")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this file")
    return parser


def print_templates() -> int:
    for template in list_templates():
        total = sum(block.duration_sec for block in template.blocks)
        print(f"{template.key:<24} {template.name:<24} {template.category:<10} {total // 60} min")
    return 0


def resolve_workout(args: argparse.Namespace) -> Workout | None:
    if args.workout is not None:
        return load_workout(args.workout)
    if args.template is not None:
        return build_workout_from_template(args.template)
    return None


def resolve_tempo(
    pool: TrackPool,
    tempo_path: Path | None,
    cache: TempoCache | None,
) -> dict[str, float | None]:
    tempo_info: dict[str, float | None] = {}
    if cache is not None:
        cached, missing = cache.lookup_many(track.id for track in pool.tracks)
        tempo_info.update(cached)
        logger.info(f"{cache.stats()}, {len(missing)} tracks not cached")

    tempo_info.update({k: v for k, v in pool.tempo_info.items() if v is not None})
    if tempo_path is not None:
        tempo_info.update(load_tempo_info(tempo_path))

    if cache is not None:
        cache.update({k: v for k, v in tempo_info.items() if k in pool.track_ids})
        cache.save()
    return tempo_info


def _fmt_time(seconds: int) -> str:
    return f"{seconds // 60:d}:{seconds % 60:02d}"


def print_playlist(playlist: GeneratedPlaylist) -> None:
    print(f"{playlist.workout_name} - {_fmt_time(playlist.total_duration_sec)}")
    for index, slot in enumerate(playlist.slots, start=1):
        cadence = f"{slot.cadence_rpm} rpm" if slot.cadence_rpm is not None else "-"
        tempo = f"{slot.tempo_bpm:.0f} bpm" if slot.tempo_bpm is not None else "? bpm"
        clipped = " (clipped)" if slot.is_clipped else ""
        print(
            f"{index:>3}. {_fmt_time(slot.start_sec):>6}-{_fmt_time(slot.end_sec):<6} "
            f"{cadence:<8} {tempo:<8} {slot.track.display_name}{clipped}"
        )
    for fallback in playlist.fallbacks:
        print(f"Warning [{fallback.kind.value}]: {fallback.message}")


async def run_simulation(playlist: GeneratedPlaylist, time_scale: float) -> int:
    player = SimulatedPlayer()
    session = PlaybackSession(
        playlist,
        player,
        volume=player,
        tick_sec=0.1,
        time_scale=time_scale,
        fade_sec=0.0,
    )
    finished = asyncio.Event()
    last_index: int | None = None

    def on_progress(progress: PlaybackProgress) -> None:
        nonlocal last_index
        if progress.slot_index != last_index:
            last_index = progress.slot_index
            print(
                f"[{_fmt_time(progress.elapsed_total_sec)}] "
                f"{progress.track_name or '(silence)'}"
            )

    def on_finish(completed: bool) -> None:
        print("Workout completed" if completed else "Playback stopped")
        finished.set()

    await session.start(on_progress, on_finish)
    try:
        await finished.wait()
    except asyncio.CancelledError:
        await session.stop()
        raise
    return 0


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    settings = Settings()
    setup_logger(
        level=args.log_level or settings.log_level,
        log_file=args.log_file or settings.log_file,
    )

    if args.list_templates:
        return print_templates()

    if args.tracks is None:
        parser.print_help()
        return 1

    try:
        workout = resolve_workout(args)
        if workout is None:
            parser.print_help()
            return 1
        pool = load_tracks(args.tracks)
        cache = None if args.no_cache else TempoCache(settings.tempo_cache_path)
        tempo_info = resolve_tempo(pool, args.tempo, cache)
        seed = args.seed if args.seed is not None else settings.random_seed
        allocator = PlaylistAllocator(
            config=settings.matching_config(),
            rng=random.Random(seed),
        )
        playlist = allocator.generate(workout, pool.tracks, tempo_info)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    print_playlist(playlist)

    if args.out is not None:
        if args.out.suffix.lower() == ".csv":
            written = export_playlist_csv(playlist, args.out)
        else:
            written = save_playlist_json(playlist, args.out)
        print(f"Saved playlist to {written}")

    if args.simulate_playback:
        if not playlist.slots:
            print("Nothing to play")
            return 1
        try:
            return asyncio.run(run_simulation(playlist, args.time_scale))
        except KeyboardInterrupt:
            return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
