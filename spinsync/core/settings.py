"""Runtime settings read from SPINSYNC_* environment variables or .env."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from spinsync.playlist.tempo import MatchingConfig


class Settings(BaseSettings):
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".spinsync")
    log_level: str = "INFO"
    log_file: Path | None = None
    random_seed: int | None = None

    tolerance_pct: int = 25
    near_miss_penalty: int = 30000
    far_miss_penalty: int = 35000
    good_enough_margin: float = 5.0
    min_clip_sec: int = 30
    max_alternatives: int = 3

    model_config = SettingsConfigDict(
        env_prefix="SPINSYNC_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{value}'")
        return level

    @field_validator("tolerance_pct", "min_clip_sec")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @property
    def tempo_cache_path(self) -> Path:
        return self.data_dir / "tempo_cache.json"

    def matching_config(self) -> MatchingConfig:
        return MatchingConfig(
            tolerance_pct=self.tolerance_pct,
            near_miss_penalty=self.near_miss_penalty,
            far_miss_penalty=self.far_miss_penalty,
            good_enough_margin=self.good_enough_margin,
            min_clip_sec=self.min_clip_sec,
            max_alternatives=self.max_alternatives,
        )
