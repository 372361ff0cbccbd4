"""Built-in cadence workout templates."""

from __future__ import annotations

from dataclasses import dataclass

from spinsync.workout.model import BlockKind, Workout, WorkoutBlock


@dataclass(frozen=True)
class WorkoutTemplateBlock:
    duration_sec: int
    intensity_pct: float
    label: str
    kind: BlockKind = BlockKind.STEADY
    cadence_rpm: int | None = None


@dataclass(frozen=True)
class WorkoutTemplate:
    key: str
    name: str
    category: str
    blocks: tuple[WorkoutTemplateBlock, ...]


def _intervals(
    count: int,
    *,
    on_sec: int,
    off_sec: int,
    on_intensity: float,
    off_intensity: float,
    on_cadence: int,
    off_cadence: int,
) -> tuple[WorkoutTemplateBlock, ...]:
    out: list[WorkoutTemplateBlock] = []
    for rep in range(1, count + 1):
        out.append(
            WorkoutTemplateBlock(on_sec, on_intensity, f"ON {rep}", BlockKind.INTERVAL, on_cadence)
        )
        out.append(
            WorkoutTemplateBlock(
                off_sec, off_intensity, f"OFF {rep}", BlockKind.INTERVAL, off_cadence
            )
        )
    return tuple(out)


TEMPLATES: tuple[WorkoutTemplate, ...] = (
    WorkoutTemplate(
        key="wake_up_20",
        name="Wake Up 20",
        category="Cadence",
        blocks=(
            WorkoutTemplateBlock(300, 0.50, "Warmup", BlockKind.WARMUP),
            WorkoutTemplateBlock(180, 0.60, "Cadence Prep", cadence_rpm=95),
            WorkoutTemplateBlock(60, 0.80, "Activation", cadence_rpm=100),
            WorkoutTemplateBlock(120, 0.55, "Recover"),
            WorkoutTemplateBlock(60, 0.90, "Openers", cadence_rpm=105),
            WorkoutTemplateBlock(180, 0.50, "Cool-down", BlockKind.COOLDOWN),
        ),
    ),
    WorkoutTemplate(
        key="tempo_30",
        name="Tempo 30",
        category="Tempo",
        blocks=(
            WorkoutTemplateBlock(420, 0.55, "Warmup", BlockKind.WARMUP),
            WorkoutTemplateBlock(720, 0.78, "Tempo Main", cadence_rpm=92),
            WorkoutTemplateBlock(240, 0.50, "Cool-down", BlockKind.COOLDOWN),
            WorkoutTemplateBlock(420, 0.50, "Free spin", BlockKind.FREERIDE),
        ),
    ),
    WorkoutTemplate(
        key="spin_ups_6x1",
        name="Spin-ups 6x1",
        category="Cadence",
        blocks=(
            WorkoutTemplateBlock(480, 0.55, "Warmup", BlockKind.WARMUP),
            *_intervals(
                6,
                on_sec=60,
                off_sec=120,
                on_intensity=0.85,
                off_intensity=0.50,
                on_cadence=110,
                off_cadence=85,
            ),
            WorkoutTemplateBlock(420, 0.50, "Cool-down", BlockKind.COOLDOWN),
        ),
    ),
    WorkoutTemplate(
        key="vo2max_5x3",
        name="VO2max 5x3",
        category="VO2max",
        blocks=(
            WorkoutTemplateBlock(600, 0.55, "Warmup", BlockKind.WARMUP),
            *_intervals(
                5,
                on_sec=180,
                off_sec=180,
                on_intensity=1.12,
                off_intensity=0.55,
                on_cadence=100,
                off_cadence=88,
            ),
            WorkoutTemplateBlock(420, 0.50, "Cool-down", BlockKind.COOLDOWN),
        ),
    ),
    WorkoutTemplate(
        key="low_cadence_strength",
        name="Low Cadence Strength",
        category="Force",
        blocks=(
            WorkoutTemplateBlock(600, 0.55, "Warmup", BlockKind.WARMUP),
            WorkoutTemplateBlock(480, 0.85, "Big gear 1", cadence_rpm=60),
            WorkoutTemplateBlock(240, 0.55, "Spin out", cadence_rpm=95),
            WorkoutTemplateBlock(480, 0.85, "Big gear 2", cadence_rpm=60),
            WorkoutTemplateBlock(240, 0.55, "Spin out", cadence_rpm=95),
            WorkoutTemplateBlock(300, 0.45, "Cool-down", BlockKind.COOLDOWN),
        ),
    ),
)


def list_templates() -> tuple[WorkoutTemplate, ...]:
    return TEMPLATES


def _infer_cadence(intensity_pct: float) -> int:
    """Infer a target cadence from intensity when the template does not define one."""
    if intensity_pct <= 0.60:
        return 85
    if intensity_pct <= 0.78:
        return 90
    if intensity_pct <= 0.95:
        return 93
    if intensity_pct <= 1.05:
        return 88
    return 100


def build_workout_from_template(template_key: str, *, infer_cadence: bool = True) -> Workout:
    template = next((item for item in TEMPLATES if item.key == template_key), None)
    if template is None:
        raise ValueError(f"Unknown workout template '{template_key}'")

    blocks: list[WorkoutBlock] = []
    for block in template.blocks:
        cadence = block.cadence_rpm
        # Free rides stay unconstrained.
        if cadence is None and infer_cadence and block.kind != BlockKind.FREERIDE:
            cadence = _infer_cadence(block.intensity_pct)
        blocks.append(
            WorkoutBlock(
                duration_sec=block.duration_sec,
                cadence_rpm=cadence,
                kind=block.kind,
                label=block.label,
            )
        )
    return Workout(name=template.name, blocks=tuple(blocks))
