"""Track pool loading from catalog exports (JSON/CSV)."""

from __future__ import annotations

import csv
import json
import math
from pathlib import Path

from loguru import logger

from spinsync.music.model import Track, TrackPool


class TrackCatalogError(ValueError):
    """Raised when a track or tempo file is invalid."""


def load_tracks(path: str | Path) -> TrackPool:
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix == ".json":
        rows = _read_json_rows(file_path)
    elif suffix == ".csv":
        rows = _read_csv_rows(file_path)
    else:
        raise TrackCatalogError(
            f"Unsupported track format '{file_path.suffix}'. Use .json or .csv"
        )

    tracks: list[Track] = []
    tempo_info: dict[str, float | None] = {}
    seen: set[str] = set()
    for i, raw in enumerate(rows):
        track = _build_track(raw, index=i)
        if track.id in seen:
            logger.debug(f"Dropping duplicate track id '{track.id}'")
            continue
        seen.add(track.id)
        tracks.append(track)
        bpm = _parse_optional_bpm(raw.get("bpm"), index=i)
        if bpm is not None:
            tempo_info[track.id] = bpm

    logger.info(
        f"Loaded {len(tracks)} tracks from {file_path.name} "
        f"({len(tempo_info)} with tempo)"
    )
    return TrackPool(tracks=tuple(tracks), tempo_info=tempo_info)


def load_tempo_info(path: str | Path) -> dict[str, float | None]:
    file_path = Path(path)
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise TrackCatalogError(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise TrackCatalogError("Tempo JSON must be an object of track id -> bpm")

    out: dict[str, float | None] = {}
    for key, value in data.items():
        out[str(key)] = _parse_optional_bpm(value, index=None)
    return out


def _read_json_rows(path: Path) -> list[dict[str, object]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise TrackCatalogError(f"Invalid JSON: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("tracks")
    if not isinstance(data, list):
        raise TrackCatalogError("Track JSON must be an array or an object with 'tracks'")

    rows: list[dict[str, object]] = []
    for i, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise TrackCatalogError(f"Track {i + 1}: must be an object")
        rows.append(raw)
    return rows


def _read_csv_rows(path: Path) -> list[dict[str, object]]:
    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle)
        fields = set(reader.fieldnames or [])
        if not {"id", "name", "uri"}.issubset(fields) or not (
            fields & {"duration_sec", "duration_ms"}
        ):
            raise TrackCatalogError(
                "CSV must contain headers: id,name,uri,duration_sec|duration_ms[,artist,bpm]"
            )
        return [dict(row) for row in reader]


def _build_track(raw: dict[str, object], *, index: int) -> Track:
    track_id = str(raw.get("id") or "").strip()
    if not track_id:
        raise TrackCatalogError(f"Track {index + 1}: missing id")
    name = str(raw.get("name") or "").strip() or track_id
    uri = str(raw.get("uri") or "").strip()
    if not uri:
        raise TrackCatalogError(f"Track {index + 1}: missing uri")

    if raw.get("duration_sec") not in (None, ""):
        duration_sec = _parse_number(raw.get("duration_sec"), "duration_sec", index)
    elif raw.get("duration_ms") not in (None, ""):
        duration_sec = _parse_number(raw.get("duration_ms"), "duration_ms", index) / 1000
    else:
        raise TrackCatalogError(f"Track {index + 1}: missing duration")
    if int(duration_sec) <= 0:
        raise TrackCatalogError(f"Track {index + 1}: duration must be > 0")

    artist_obj = raw.get("artist")
    artist: str | None = None
    if artist_obj is not None:
        artist = str(artist_obj).strip() or None
    return Track(
        id=track_id,
        name=name,
        duration_sec=int(duration_sec),
        uri=uri,
        artist=artist,
    )


def _parse_number(raw: object, field_name: str, index: int) -> float:
    try:
        value = float(str(raw).strip())
    except ValueError as exc:
        raise TrackCatalogError(f"Track {index + 1}: invalid {field_name}") from exc
    if not math.isfinite(value):
        raise TrackCatalogError(f"Track {index + 1}: invalid {field_name}")
    return value


def _parse_optional_bpm(raw: object, *, index: int | None) -> float | None:
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        return None
    where = f"Track {index + 1}" if index is not None else "Tempo map"
    try:
        bpm = float(str(raw).strip())
    except ValueError as exc:
        raise TrackCatalogError(f"{where}: invalid bpm '{raw}'") from exc
    if not math.isfinite(bpm):
        raise TrackCatalogError(f"{where}: invalid bpm '{raw}'")
    # Negative tempos are the upstream "unknown" marker.
    return bpm if bpm >= 0 else None
