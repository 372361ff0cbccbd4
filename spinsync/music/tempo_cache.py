"""Local persistence for tempo lookups (track id -> bpm)."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from loguru import logger


def _default_cache_path() -> Path:
    return Path.home() / ".spinsync" / "tempo_cache.json"


class TempoCache:
    """Key/value cache of tempo lookups, persisted as one JSON object.

    A cached ``None`` records a lookup that found no tempo, so it is not
    fetched again.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _default_cache_path()
        self._entries: dict[str, float | None] = {}
        self._dirty = False
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        return len(self._entries)

    def contains(self, track_id: str) -> bool:
        return track_id in self._entries

    def get(self, track_id: str) -> float | None:
        return self._entries.get(track_id)

    def put(self, track_id: str, bpm: float | None) -> None:
        if bpm is not None and bpm < 0:
            bpm = None
        self._entries[track_id] = bpm
        self._dirty = True

    def update(self, values: dict[str, float | None]) -> None:
        for track_id, bpm in values.items():
            self.put(track_id, bpm)

    def lookup_many(self, track_ids: Iterable[str]) -> tuple[dict[str, float | None], list[str]]:
        """Split ids into cached tempos and ids that still need a lookup."""
        cached: dict[str, float | None] = {}
        missing: list[str] = []
        for track_id in track_ids:
            if track_id in self._entries:
                cached[track_id] = self._entries[track_id]
            else:
                missing.append(track_id)
        return cached, missing

    def save(self) -> Path:
        if not self._dirty and self._path.exists():
            return self._path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(self._entries, ensure_ascii=True, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        self._dirty = False
        return self._path

    def clear(self) -> None:
        self._entries.clear()
        self._dirty = True

    def stats(self) -> str:
        known = sum(1 for value in self._entries.values() if value is not None)
        return f"Tempo cache: {known}/{len(self._entries)} tracks with tempo"

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Failed to load tempo cache {self._path}: {exc}")
            return
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring tempo cache {self._path}: not a JSON object")
            return

        for key, value in payload.items():
            if value is None or isinstance(value, (int, float)):
                self._entries[str(key)] = float(value) if value is not None else None
        logger.debug(f"Loaded {len(self._entries)} cached tempos from {self._path}")
