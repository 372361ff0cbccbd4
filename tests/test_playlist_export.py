from __future__ import annotations

import csv
import json
from pathlib import Path

from spinsync.music.model import Track
from spinsync.playlist.allocation import generate_playlist
from spinsync.playlist.export import export_playlist_csv, playlist_to_dict, save_playlist_json
from spinsync.playlist.model import GeneratedPlaylist
from spinsync.workout.model import Workout, WorkoutBlock


def _playlist() -> GeneratedPlaylist:
    workout = Workout(
        name="Export Me!",
        blocks=(WorkoutBlock(100, cadence_rpm=90), WorkoutBlock(70)),
    )
    tracks = [
        Track(id="a", name="Alpha", duration_sec=60, uri="uri:a", artist="Band"),
        Track(id="b", name="Beta", duration_sec=60, uri="uri:b"),
    ]
    return generate_playlist(workout, tracks, {"a": 90.0, "b": 180.0})


def test_playlist_to_dict_includes_gaps_and_fallbacks() -> None:
    payload = playlist_to_dict(_playlist())

    assert payload["workout_name"] == "Export Me!"
    assert payload["total_duration_sec"] == 170
    slots = payload["slots"]
    assert [(s["start_sec"], s["end_sec"]) for s in slots] == [(0, 60), (60, 100), (100, 160)]
    assert slots[1]["clipped"] is True
    assert slots[1]["clip_end"] == 40
    assert payload["gaps"] == [[160, 170]]
    kinds = {item["kind"] for item in payload["fallbacks"]}
    assert {"pool_reuse", "unfilled_gap"} <= kinds


def test_save_playlist_json(tmp_path: Path) -> None:
    out = save_playlist_json(_playlist(), tmp_path / "nested" / "playlist.json")

    data = json.loads(out.read_text(encoding="utf-8"))
    assert len(data["slots"]) == 3
    assert data["slots"][0]["uri"] in {"uri:a", "uri:b"}


def test_export_playlist_csv(tmp_path: Path) -> None:
    out = export_playlist_csv(_playlist(), tmp_path / "playlist.csv")

    with out.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))

    assert len(rows) == 3
    assert rows[0]["workout_name"] == "Export Me!"
    assert rows[0]["slot"] == "1"
    assert rows[2]["start_sec"] == "100"
    assert rows[2]["cadence_rpm"] == ""
    assert rows[1]["clipped"] == "True"
