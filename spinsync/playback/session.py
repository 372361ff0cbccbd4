"""Async playback session: one generated playlist, its substitutor and runner."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from spinsync.playback.player import FADE_DURATION_SEC, Player, VolumeControl
from spinsync.playback.runner import PlaybackProgress, PlaybackRunner
from spinsync.playlist.model import GeneratedPlaylist
from spinsync.playlist.substitution import Substitution, TrackSubstitutor
from spinsync.playlist.tempo import DEFAULT_MATCHING, MatchingConfig


class PlaybackSession:
    """Callers must await one ``substitute`` at a time."""

    def __init__(
        self,
        playlist: GeneratedPlaylist,
        player: Player,
        volume: VolumeControl | None = None,
        config: MatchingConfig = DEFAULT_MATCHING,
        tick_sec: float = 1.0,
        time_scale: float = 1.0,
        fade_sec: float = FADE_DURATION_SEC,
    ) -> None:
        self.playlist = playlist
        self._substitutor = TrackSubstitutor.for_playlist(playlist, config)
        self._runner = PlaybackRunner(
            player,
            volume=volume,
            tick_sec=tick_sec,
            time_scale=time_scale,
            fade_sec=fade_sec,
        )

    @property
    def substitutor(self) -> TrackSubstitutor:
        return self._substitutor

    @property
    def running(self) -> bool:
        return self._runner.is_running

    @property
    def paused(self) -> bool:
        return self._runner.is_paused

    @property
    def current_index(self) -> int | None:
        return self._runner.current_index

    async def start(
        self,
        on_progress: Callable[[PlaybackProgress], None],
        on_finish: Callable[[bool], None],
    ) -> None:
        await self._runner.start(self.playlist, on_progress, on_finish)

    async def pause(self) -> None:
        await self._runner.pause()

    async def resume(self) -> None:
        await self._runner.resume()

    async def stop(self) -> None:
        await self._runner.stop()

    async def substitute(self, index: int) -> Substitution:
        result = self._substitutor.replace_slot(self.playlist, index)
        if self._runner.is_running and self._runner.current_index == index:
            logger.info(f"Slot {index + 1} is playing, switching to '{result.track.name}'")
            await self._runner.replay_current()
        return result
