"""Generated playlist exports."""

from __future__ import annotations

import csv
import json
import re
from pathlib import Path

from spinsync.playlist.model import GeneratedPlaylist, PlaylistSlot


def _default_export_dir() -> Path:
    return Path.home() / ".spinsync" / "playlists"


def _slugify(name: str) -> str:
    s = re.sub(r"[^a-zA-Z0-9]+", "-", name.strip().lower()).strip("-")
    return s or "playlist"


def _slot_payload(slot: PlaylistSlot) -> dict[str, object]:
    return {
        "track_id": slot.track.id,
        "track_name": slot.track.name,
        "artist": slot.track.artist,
        "uri": slot.track.uri,
        "block_index": slot.block_index,
        "start_sec": slot.start_sec,
        "end_sec": slot.end_sec,
        "clip_start": slot.clip_start,
        "clip_end": slot.clip_end,
        "clipped": slot.is_clipped,
        "cadence_rpm": slot.cadence_rpm,
        "tempo_bpm": slot.tempo_bpm,
        "alternatives": [track.id for track in slot.alternatives],
    }


def playlist_to_dict(playlist: GeneratedPlaylist) -> dict[str, object]:
    return {
        "workout_name": playlist.workout_name,
        "total_duration_sec": playlist.total_duration_sec,
        "slots": [_slot_payload(slot) for slot in playlist.slots],
        "gaps": [list(gap) for gap in playlist.gaps()],
        "fallbacks": [
            {
                "kind": item.kind.value,
                "message": item.message,
                "block_index": item.block_index,
                "track_id": item.track_id,
            }
            for item in playlist.fallbacks
        ],
    }


def save_playlist_json(playlist: GeneratedPlaylist, path: Path | None = None) -> Path:
    out = path or _default_export_dir() / f"{_slugify(playlist.workout_name)}.json"
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(
        json.dumps(playlist_to_dict(playlist), ensure_ascii=True, indent=2),
        encoding="utf-8",
    )
    return out


def export_playlist_csv(playlist: GeneratedPlaylist, path: Path | None = None) -> Path:
    out = path or _default_export_dir() / f"{_slugify(playlist.workout_name)}.csv"
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(
            [
                "workout_name",
                "slot",
                "block_index",
                "start_sec",
                "end_sec",
                "clip_start",
                "clip_end",
                "clipped",
                "cadence_rpm",
                "tempo_bpm",
                "track_id",
                "track_name",
                "artist",
                "uri",
            ]
        )
        for index, slot in enumerate(playlist.slots, start=1):
            writer.writerow(
                [
                    playlist.workout_name,
                    index,
                    slot.block_index,
                    slot.start_sec,
                    slot.end_sec,
                    slot.clip_start,
                    slot.clip_end,
                    slot.is_clipped,
                    slot.cadence_rpm,
                    slot.tempo_bpm,
                    slot.track.id,
                    slot.track.name,
                    slot.track.artist,
                    slot.track.uri,
                ]
            )
    return out
