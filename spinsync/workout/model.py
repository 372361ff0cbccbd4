"""Workout domain models."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum


class BlockKind(str, Enum):
    WARMUP = "warmup"
    STEADY = "steady"
    COOLDOWN = "cooldown"
    INTERVAL = "interval"
    RAMP = "ramp"
    FREERIDE = "freeride"


@dataclass(frozen=True)
class WorkoutBlock:
    duration_sec: int
    cadence_rpm: int | None = None
    kind: BlockKind = BlockKind.STEADY
    label: str | None = None


@dataclass(frozen=True)
class Workout:
    name: str
    blocks: tuple[WorkoutBlock, ...]
    author: str | None = None
    description: str | None = None

    @property
    def total_duration_sec(self) -> int:
        return sum(block.duration_sec for block in self.blocks)

    def block_offsets(self) -> Iterator[tuple[int, WorkoutBlock]]:
        """Yield ``(absolute_start_sec, block)`` in workout order."""
        offset = 0
        for block in self.blocks:
            yield offset, block
            offset += block.duration_sec
