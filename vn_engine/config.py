"""Player settings: defaults merged with {data_dir}/config.json.

get_config() returns defaults overridden by any stored values; unknown keys in
the file are ignored. update_config() applies a partial update and persists
the full result. Speeds are clamped to their allowed ranges on every load.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

TEXT_SPEED_RANGE = (10, 200)  # ms per character
AUTO_SPEED_RANGE = (500, 5000)  # ms before auto-advance

_data_dir: Path | None = None


def clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, value))


class PlayerSettings(BaseModel):
    text_speed: int = 50
    auto_speed: int = 2000
    auto_mode: bool = False
    streaming_advance_ms: int = 1000
    location_advance_ms: int = 1000
    stream_timeout: float = 30.0
    hidden_characters: list[str] = Field(default_factory=list)

    @field_validator("text_speed")
    @classmethod
    def _clamp_text_speed(cls, v: int) -> int:
        return clamp(v, TEXT_SPEED_RANGE)

    @field_validator("auto_speed")
    @classmethod
    def _clamp_auto_speed(cls, v: int) -> int:
        return clamp(v, AUTO_SPEED_RANGE)


def init_config(data_dir: Path) -> None:
    global _data_dir
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_config() before reading settings"
    return _data_dir


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> PlayerSettings:
    """Read settings, returning defaults merged with stored values."""
    stored: dict[str, Any] = {}
    path = _config_path()
    if path.is_file():
        try:
            stored = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable %s: %s", path, e)
            stored = {}
    known = {k: v for k, v in stored.items() if k in PlayerSettings.model_fields}
    return PlayerSettings(**known)


def update_config(fields: dict[str, Any]) -> PlayerSettings:
    """Merge fields into settings and persist. Returns the full settings."""
    merged = get_config().model_dump()
    merged.update({k: v for k, v in fields.items() if k in PlayerSettings.model_fields})
    settings = PlayerSettings(**merged)
    _config_path().write_text(settings.model_dump_json(indent=2))
    return settings
