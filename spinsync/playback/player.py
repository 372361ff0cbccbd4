"""Player transport interface, a simulated player, and volume fades."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

from loguru import logger

FADE_DURATION_SEC = 0.8
FADE_INTERVAL_SEC = 0.05


class Player(Protocol):
    async def play(self, uri: str) -> None: ...

    async def pause(self) -> None: ...

    async def resume(self) -> None: ...


class VolumeControl(Protocol):
    def get_volume(self) -> int: ...

    def set_volume(self, level: int) -> None: ...


class SimulatedPlayer:
    """In-memory player that records commands instead of driving a transport."""

    def __init__(self, max_volume: int = 15, fail_plays: int = 0) -> None:
        self.commands: list[tuple[str, str | None]] = []
        self.volume_history: list[int] = []
        self.max_volume = max_volume
        self._volume = max_volume
        self._fail_plays = fail_plays
        self.now_playing: str | None = None
        self.paused = False

    async def play(self, uri: str) -> None:
        if self._fail_plays > 0:
            self._fail_plays -= 1
            raise ConnectionError("Simulated player not connected")
        self.commands.append(("play", uri))
        self.now_playing = uri
        self.paused = False

    async def pause(self) -> None:
        self.commands.append(("pause", None))
        self.paused = True

    async def resume(self) -> None:
        self.commands.append(("resume", None))
        self.paused = False

    def get_volume(self) -> int:
        return self._volume

    def set_volume(self, level: int) -> None:
        self._volume = max(0, min(self.max_volume, level))
        self.volume_history.append(self._volume)

    @property
    def played_uris(self) -> list[str]:
        return [uri for command, uri in self.commands if command == "play" and uri is not None]


async def fade_transition(
    volume: VolumeControl,
    switch: Callable[[], Awaitable[None]],
    duration_sec: float = FADE_DURATION_SEC,
    interval_sec: float = FADE_INTERVAL_SEC,
) -> None:
    """Fade out, run ``switch``, then fade back in to the starting volume.

    Half of ``duration_sec`` goes to each direction. The starting volume is
    restored even when ``switch`` raises.
    """
    original = volume.get_volume()
    steps = max(1, int((duration_sec / 2) / interval_sec))
    try:
        for step in range(steps):
            volume.set_volume(int(original - (original / steps) * step))
            await asyncio.sleep(interval_sec)
        volume.set_volume(0)

        await switch()

        for step in range(steps):
            volume.set_volume(int((original / steps) * step))
            await asyncio.sleep(interval_sec)
    finally:
        volume.set_volume(original)
        logger.debug(f"Fade complete, volume restored to {original}")
