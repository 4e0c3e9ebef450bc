from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .core.tariff import Tariff

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


class ClockConfig(BaseModel):
    tick_interval_ms: int = Field(1000, ge=100, le=60000)


class GPSConfig(BaseModel):
    """Position source configuration."""

    enabled: bool = Field(True)
    mock_mode: bool = Field(True)  # Simulated drive unless gpsd is requested
    host: str = Field("localhost")
    port: int = Field(2947, ge=1, le=65535)
    timeout: float = Field(10.0, ge=1.0)
    reconnect_delay: float = Field(5.0, ge=1.0)
    mock_lat: float = Field(35.6762, ge=-90, le=90)  # Tokyo default
    mock_lng: float = Field(139.6503, ge=-180, le=180)
    mock_speed_mps: float = Field(10.0, ge=0)
    mock_heading: float = Field(45.0, ge=0, lt=360)
    min_movement_meters: float = Field(0.0, ge=0)  # 0 = no jitter filter
    max_jump_meters: float | None = Field(None, gt=0)  # None = no glitch filter


class LoggingConfig(BaseModel):
    level: str = Field("INFO")
    format: str = Field(LOG_FORMAT)

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {value}")
        return level


class DisplayConfig(BaseModel):
    currency_symbol: str = Field("¥")


class FareboxConfig(BaseModel):
    tariff: Tariff = Field(default_factory=Tariff)
    clock: ClockConfig = Field(default_factory=ClockConfig)
    gps: GPSConfig = Field(default_factory=GPSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)


def load_config(path: Path) -> FareboxConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config root must be a mapping, got {type(raw).__name__}")
    try:
        return FareboxConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def resolve_config_path(cli_path: Path | None) -> Path:
    """Resolve config path by priority: CLI, env, /etc/farebox, repo configs."""
    candidates: list[Path] = []
    if cli_path:
        p = Path(cli_path).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    env = os.environ.get("FAREBOX_CONFIG")
    if env:
        p = Path(env).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    for p in [Path("/etc/farebox/farebox.yml"), Path("configs/farebox.yml")]:
        if p.exists():
            return p.resolve()
        candidates.append(p)
    # Fallback to first candidate even if not exists to surface errors consistently
    return candidates[0] if candidates else Path("configs/farebox.yml").resolve()


def load_config_or_default(path: Path | None) -> FareboxConfig:
    """Load the resolved config, or defaults when no file exists."""
    resolved = resolve_config_path(path)
    if not resolved.exists():
        return FareboxConfig()
    return load_config(resolved)


def setup_logging(cfg: LoggingConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg.level),
        format=cfg.format,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
