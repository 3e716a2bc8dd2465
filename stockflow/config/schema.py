from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class StockflowBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class SimulationConfig(StockflowBaseModel):
    dt: float = Field(default=1.0, gt=0)
    steps: int = Field(default=100, ge=0)
    history_capacity: int = Field(default=1000, ge=1)
    batch_size: Optional[int] = Field(default=None, ge=1)
    diagnostics_capacity: int = Field(default=200, ge=1)
    log_level: str = Field(default="WARNING")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = str(value).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"log_level must be a logging level name, got {value!r}")
        return level

    def effective_batch_size(self, steps: Optional[int] = None) -> int:
        if self.batch_size:
            return self.batch_size
        total = self.steps if steps is None else steps
        return max(1, total // 100)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def load_config(path: str | Path | None = None) -> SimulationConfig:
    """Read a YAML config file; a missing or empty file gives the defaults."""

    if path is None:
        return SimulationConfig()
    path = Path(path)
    if not path.exists():
        return SimulationConfig()
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a mapping")
    section = data.get("simulation", data)
    return SimulationConfig(**section)
