"""Playlist playback driven by absolute workout time."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from spinsync.playback.player import FADE_DURATION_SEC, Player, VolumeControl, fade_transition
from spinsync.playlist.model import GeneratedPlaylist, PlaylistSlot


@dataclass(frozen=True)
class PlaybackProgress:
    slot_index: int | None
    slot_total: int
    track_name: str | None
    block_index: int | None
    cadence_rpm: int | None
    tempo_bpm: float | None
    slot_remaining_sec: int
    elapsed_total_sec: int
    total_duration_sec: int
    total_remaining_sec: int
    paused: bool


ProgressCallback = Callable[[PlaybackProgress], None]
FinishCallback = Callable[[bool], None]


class PlaybackRunner:
    """Switch tracks at slot boundaries of a generated playlist.

    Elapsed time is measured from the workout start (pauses excluded) rather
    than per track, so transitions do not drift. ``time_scale`` speeds the
    workout clock up for simulations.
    """

    def __init__(
        self,
        player: Player,
        volume: VolumeControl | None = None,
        tick_sec: float = 1.0,
        time_scale: float = 1.0,
        fade_sec: float = FADE_DURATION_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._player = player
        self._volume = volume
        self._tick_sec = tick_sec
        self._time_scale = time_scale
        self._fade_sec = fade_sec
        self._clock = clock
        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event = asyncio.Event()
        self._playlist: GeneratedPlaylist | None = None
        self._current_index: int | None = None
        self._started_at = 0.0
        self._paused_at: float | None = None
        self._paused_total = 0.0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_paused(self) -> bool:
        return self._paused_at is not None

    @property
    def current_index(self) -> int | None:
        return self._current_index

    def elapsed_sec(self) -> float:
        if self._playlist is None:
            return 0.0
        now = self._paused_at if self._paused_at is not None else self._clock()
        return (now - self._started_at - self._paused_total) * self._time_scale

    async def start(
        self,
        playlist: GeneratedPlaylist,
        on_progress: ProgressCallback,
        on_finish: FinishCallback,
    ) -> None:
        if self.is_running:
            raise RuntimeError("Playback already running")
        if not playlist.slots:
            raise RuntimeError("Playlist has no tracks to play")

        self._playlist = playlist
        self._current_index = None
        self._started_at = self._clock()
        self._paused_at = None
        self._paused_total = 0.0
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(playlist, on_progress, on_finish))

    async def stop(self) -> None:
        """Stop playback and pause the player.

        A play failure that already ended the task is re-raised here.
        """
        if self._task is None:
            return

        self._stop_event.set()
        task, self._task = self._task, None
        try:
            await task
        finally:
            await self._player.pause()

    async def pause(self) -> None:
        if not self.is_running or self.is_paused:
            return
        self._paused_at = self._clock()
        await self._player.pause()
        logger.info(f"Playback paused at {self.elapsed_sec():.0f}s")

    async def resume(self) -> None:
        if self._paused_at is None:
            return
        self._paused_total += self._clock() - self._paused_at
        self._paused_at = None
        await self._player.resume()
        logger.info(f"Playback resumed at {self.elapsed_sec():.0f}s")

    async def replay_current(self) -> None:
        """Re-issue play for the current slot, e.g. after its track was replaced."""
        if self._playlist is None or self._current_index is None:
            return
        slot = self._playlist.slots[self._current_index]
        await self._switch_to(slot)
        if self.is_paused:
            await self._player.pause()

    async def _run(
        self,
        playlist: GeneratedPlaylist,
        on_progress: ProgressCallback,
        on_finish: FinishCallback,
    ) -> None:
        completed = False
        try:
            while not self._stop_event.is_set():
                elapsed = self.elapsed_sec()
                if elapsed >= playlist.total_duration_sec:
                    completed = True
                    logger.info("Workout completed")
                    break

                if not self.is_paused:
                    index = playlist.slot_at(elapsed)
                    if index != self._current_index:
                        self._current_index = index
                        if index is None:
                            logger.warning(f"Silent gap at {elapsed:.0f}s")
                            await self._player.pause()
                        else:
                            slot = playlist.slots[index]
                            logger.info(
                                f"Playing slot {index + 1}/{len(playlist.slots)}: "
                                f"'{slot.track.name}'"
                            )
                            await self._switch_to(slot, fade=index > 0)

                on_progress(self._progress(playlist, elapsed))

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._tick_sec)
                except asyncio.TimeoutError:
                    pass

            if completed:
                await self._player.pause()
        except RuntimeError as exc:
            logger.error(f"Playback aborted: {exc}")
            raise
        finally:
            on_finish(completed)

    async def _switch_to(self, slot: PlaylistSlot, fade: bool = False) -> None:
        if fade and self._volume is not None and self._fade_sec > 0:
            await fade_transition(
                self._volume,
                lambda: self._play_with_retry(slot.track.uri),
                duration_sec=self._fade_sec,
                interval_sec=min(0.05, self._fade_sec / 2),
            )
            return
        await self._play_with_retry(slot.track.uri)

    async def _play_with_retry(self, uri: str) -> None:
        attempts = 0
        last_exc: Exception | None = None
        while attempts < 3 and not self._stop_event.is_set():
            attempts += 1
            try:
                await self._player.play(uri)
                return
            except Exception as exc:
                logger.warning(f"Play command for {uri} failed ({exc}), attempt {attempts}/3")
                last_exc = exc
                await asyncio.sleep(min(1.0, self._tick_sec))

        if last_exc is not None:
            raise RuntimeError(f"Unable to play {uri}") from last_exc

    def _progress(self, playlist: GeneratedPlaylist, elapsed: float) -> PlaybackProgress:
        elapsed_total = int(elapsed)
        total = playlist.total_duration_sec
        slot = (
            playlist.slots[self._current_index] if self._current_index is not None else None
        )
        return PlaybackProgress(
            slot_index=self._current_index,
            slot_total=len(playlist.slots),
            track_name=slot.track.name if slot is not None else None,
            block_index=slot.block_index if slot is not None else None,
            cadence_rpm=slot.cadence_rpm if slot is not None else None,
            tempo_bpm=slot.tempo_bpm if slot is not None else None,
            slot_remaining_sec=max(0, slot.end_sec - elapsed_total) if slot is not None else 0,
            elapsed_total_sec=elapsed_total,
            total_duration_sec=total,
            total_remaining_sec=max(0, total - elapsed_total),
            paused=self.is_paused,
        )
