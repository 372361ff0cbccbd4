from __future__ import annotations

from pathlib import Path

import pytest

from spinsync.workout.model import BlockKind
from spinsync.workout.parser import WorkoutParseError, load_workout


def test_load_workout_json(tmp_path: Path) -> None:
    workout_file = tmp_path / "sample.json"
    workout_file.write_text(
        (
            '{"name":"Cadence Drill","author":"Coach","blocks":['
            '{"duration_sec":300,"kind":"warmup"},'
            '{"duration_sec":60,"cadence_rpm":105,"kind":"interval","label":"Spin"}]}'
        ),
        encoding="utf-8",
    )

    workout = load_workout(workout_file)

    assert workout.name == "Cadence Drill"
    assert workout.author == "Coach"
    assert len(workout.blocks) == 2
    assert workout.total_duration_sec == 360
    assert workout.blocks[0].cadence_rpm is None
    assert workout.blocks[0].kind == BlockKind.WARMUP
    assert workout.blocks[1].cadence_rpm == 105
    assert workout.blocks[1].label == "Spin"


def test_load_workout_csv(tmp_path: Path) -> None:
    workout_file = tmp_path / "sample.csv"
    workout_file.write_text(
        "duration_sec,cadence_rpm,label\n120,,easy\n60,95,fast\n",
        encoding="utf-8",
    )

    workout = load_workout(workout_file)

    assert workout.name == "sample"
    assert [block.cadence_rpm for block in workout.blocks] == [None, 95]
    assert workout.blocks[0].kind == BlockKind.STEADY
    assert workout.total_duration_sec == 180


def test_load_workout_zwo_expands_intervals(tmp_path: Path) -> None:
    workout_file = tmp_path / "drill.zwo"
    workout_file.write_text(
        """<workout_file>
    <author>Zwift</author>
    <name>Spin Drill</name>
    <workout>
        <Warmup Duration="300" PowerLow="0.4" PowerHigh="0.7"/>
        <textevent timeoffset="10" message="Go"/>
        <IntervalsT Repeat="2" OnDuration="60" OffDuration="90" Cadence="105" CadenceResting="85"/>
        <SteadyState Duration="240" Power="0.75" Cadence="90"/>
        <FreeRide Duration="120"/>
    </workout>
</workout_file>
""",
        encoding="utf-8",
    )

    workout = load_workout(workout_file)

    assert workout.name == "Spin Drill"
    assert workout.author == "Zwift"
    assert [block.duration_sec for block in workout.blocks] == [300, 60, 90, 60, 90, 240, 120]
    assert [block.cadence_rpm for block in workout.blocks] == [None, 105, 85, 105, 85, 90, None]
    assert workout.blocks[1].label == "ON 1"
    assert workout.blocks[4].label == "OFF 2"
    assert workout.blocks[-1].kind == BlockKind.FREERIDE


def test_load_workout_zwo_without_blocks(tmp_path: Path) -> None:
    workout_file = tmp_path / "empty.zwo"
    workout_file.write_text(
        "<workout_file><name>Empty</name><workout/></workout_file>",
        encoding="utf-8",
    )

    with pytest.raises(WorkoutParseError, match="at least one block"):
        load_workout(workout_file)


def test_load_workout_zwo_wrong_root(tmp_path: Path) -> None:
    workout_file = tmp_path / "bad.zwo"
    workout_file.write_text("<workout><SteadyState Duration='60'/></workout>", encoding="utf-8")

    with pytest.raises(WorkoutParseError):
        load_workout(workout_file)


def test_load_workout_invalid_extension(tmp_path: Path) -> None:
    workout_file = tmp_path / "sample.txt"
    workout_file.write_text("x", encoding="utf-8")

    with pytest.raises(WorkoutParseError):
        load_workout(workout_file)


def test_load_workout_invalid_values(tmp_path: Path) -> None:
    workout_file = tmp_path / "invalid.json"
    workout_file.write_text(
        '{"name":"Bad","blocks":[{"duration_sec":0,"cadence_rpm":90}]}',
        encoding="utf-8",
    )

    with pytest.raises(WorkoutParseError, match="Block 1"):
        load_workout(workout_file)


def test_load_workout_rejects_bad_cadence_and_kind(tmp_path: Path) -> None:
    cadence_file = tmp_path / "cadence.csv"
    cadence_file.write_text("duration_sec,cadence_rpm\n60,90\n60,-5\n", encoding="utf-8")
    with pytest.raises(WorkoutParseError, match="Block 2"):
        load_workout(cadence_file)

    kind_file = tmp_path / "kind.json"
    kind_file.write_text(
        '{"blocks":[{"duration_sec":60,"kind":"sprint"}]}',
        encoding="utf-8",
    )
    with pytest.raises(WorkoutParseError, match="unknown kind"):
        load_workout(kind_file)


def test_load_workout_csv_requires_duration_header(tmp_path: Path) -> None:
    workout_file = tmp_path / "headers.csv"
    workout_file.write_text("cadence_rpm\n90\n", encoding="utf-8")

    with pytest.raises(WorkoutParseError, match="duration_sec"):
        load_workout(workout_file)
