"""Workout file parser (JSON/CSV/ZWO)."""

from __future__ import annotations

import csv
import json
import xml.etree.ElementTree as ET
from pathlib import Path

from spinsync.workout.model import BlockKind, Workout, WorkoutBlock


class WorkoutParseError(ValueError):
    """Raised when a workout file is invalid."""


_ZWO_KINDS: dict[str, BlockKind] = {
    "Warmup": BlockKind.WARMUP,
    "SteadyState": BlockKind.STEADY,
    "Cooldown": BlockKind.COOLDOWN,
    "Ramp": BlockKind.RAMP,
    "FreeRide": BlockKind.FREERIDE,
}


def load_workout(path: str | Path) -> Workout:
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix == ".json":
        return _load_json(file_path)
    if suffix == ".csv":
        return _load_csv(file_path)
    if suffix == ".zwo":
        return _load_zwo(file_path)
    raise WorkoutParseError(
        f"Unsupported workout format '{file_path.suffix}'. Use .json, .csv or .zwo"
    )


def _load_json(path: Path) -> Workout:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise WorkoutParseError(f"Invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise WorkoutParseError("Workout JSON must be an object")

    name_obj = data.get("name", path.stem)
    if not isinstance(name_obj, str):
        raise WorkoutParseError("Workout field 'name' must be a string")

    blocks_obj = data.get("blocks")
    if not isinstance(blocks_obj, list):
        raise WorkoutParseError("Workout field 'blocks' must be an array")

    blocks: list[WorkoutBlock] = []
    for i, raw in enumerate(blocks_obj):
        if not isinstance(raw, dict):
            raise WorkoutParseError(f"Block {i + 1}: must be an object")
        blocks.append(
            _build_block(
                duration_obj=raw.get("duration_sec"),
                cadence_obj=raw.get("cadence_rpm"),
                kind_obj=raw.get("kind"),
                label_obj=raw.get("label"),
                index=i,
            )
        )

    author = data.get("author")
    description = data.get("description")
    return _build_workout(
        name=name_obj.strip() or path.stem,
        blocks=blocks,
        author=str(author) if author is not None else None,
        description=str(description) if description is not None else None,
    )


def _load_csv(path: Path) -> Workout:
    rows: list[WorkoutBlock] = []
    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle)
        fields = set(reader.fieldnames or [])
        if "duration_sec" not in fields:
            raise WorkoutParseError(
                "CSV must contain headers: duration_sec[,cadence_rpm,kind,label]"
            )

        for i, row in enumerate(reader):
            rows.append(
                _build_block(
                    duration_obj=row.get("duration_sec"),
                    cadence_obj=row.get("cadence_rpm"),
                    kind_obj=row.get("kind"),
                    label_obj=row.get("label"),
                    index=i,
                )
            )

    return _build_workout(name=path.stem, blocks=rows)


def _load_zwo(path: Path) -> Workout:
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise WorkoutParseError(f"Invalid ZWO XML: {exc}") from exc

    if root.tag != "workout_file":
        raise WorkoutParseError("ZWO root element must be <workout_file>")

    workout_el = root.find("workout")
    if workout_el is None:
        raise WorkoutParseError("ZWO file has no <workout> element")

    blocks: list[WorkoutBlock] = []
    for element in workout_el:
        if element.tag == "IntervalsT":
            blocks.extend(_zwo_intervals(element, index=len(blocks)))
            continue
        kind = _ZWO_KINDS.get(element.tag)
        if kind is None:
            # textevent and other decorations carry nothing for playlists.
            continue
        blocks.append(
            _build_block(
                duration_obj=element.get("Duration"),
                cadence_obj=element.get("Cadence"),
                kind_obj=kind.value,
                label_obj=None,
                index=len(blocks),
            )
        )

    name = (root.findtext("name") or "").strip() or path.stem
    return _build_workout(
        name=name,
        blocks=blocks,
        author=(root.findtext("author") or "").strip() or None,
        description=(root.findtext("description") or "").strip() or None,
    )


def _zwo_intervals(element: ET.Element, *, index: int) -> list[WorkoutBlock]:
    repeat = _parse_int_field(
        raw=element.get("Repeat", "1"), field_name="Repeat", index=index
    )
    if repeat <= 0:
        raise WorkoutParseError(f"Block {index + 1}: Repeat must be > 0")

    out: list[WorkoutBlock] = []
    for rep in range(1, repeat + 1):
        out.append(
            _build_block(
                duration_obj=element.get("OnDuration"),
                cadence_obj=element.get("Cadence"),
                kind_obj=BlockKind.INTERVAL.value,
                label_obj=f"ON {rep}",
                index=index + len(out),
            )
        )
        out.append(
            _build_block(
                duration_obj=element.get("OffDuration"),
                cadence_obj=element.get("CadenceResting"),
                kind_obj=BlockKind.INTERVAL.value,
                label_obj=f"OFF {rep}",
                index=index + len(out),
            )
        )
    return out


def _build_block(
    *,
    duration_obj: object,
    cadence_obj: object,
    kind_obj: object,
    label_obj: object,
    index: int,
) -> WorkoutBlock:
    duration_sec = _parse_int_field(
        raw=duration_obj,
        field_name="duration_sec",
        index=index,
    )
    if duration_sec <= 0:
        raise WorkoutParseError(f"Block {index + 1}: duration_sec must be > 0")

    cadence_rpm = _parse_optional_int_field(
        raw=cadence_obj,
        field_name="cadence_rpm",
        index=index,
    )
    if cadence_rpm is not None and cadence_rpm <= 0:
        raise WorkoutParseError(f"Block {index + 1}: cadence_rpm must be > 0")

    kind = BlockKind.STEADY
    if kind_obj is not None and str(kind_obj).strip():
        try:
            kind = BlockKind(str(kind_obj).strip().lower())
        except ValueError as exc:
            raise WorkoutParseError(
                f"Block {index + 1}: unknown kind '{kind_obj}'"
            ) from exc

    label: str | None
    if label_obj is None:
        label = None
    else:
        label = str(label_obj).strip() or None

    return WorkoutBlock(
        duration_sec=duration_sec,
        cadence_rpm=cadence_rpm,
        kind=kind,
        label=label,
    )


def _build_workout(
    *,
    name: str,
    blocks: list[WorkoutBlock],
    author: str | None = None,
    description: str | None = None,
) -> Workout:
    if not blocks:
        raise WorkoutParseError("Workout must contain at least one block")
    return Workout(
        name=name,
        blocks=tuple(blocks),
        author=author,
        description=description,
    )


def _parse_int_field(*, raw: object, field_name: str, index: int) -> int:
    if raw is None:
        raise WorkoutParseError(f"Block {index + 1}: invalid {field_name}")
    try:
        return int(float(str(raw).strip()))
    except (ValueError, OverflowError) as exc:
        raise WorkoutParseError(f"Block {index + 1}: invalid {field_name}") from exc


def _parse_optional_int_field(
    *, raw: object, field_name: str, index: int
) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, str) and raw.strip() == "":
        return None
    return _parse_int_field(raw=raw, field_name=field_name, index=index)
