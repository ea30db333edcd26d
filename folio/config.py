"""Folio configuration management."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .xdg import get_xdg_config_path, get_xdg_data_path

logger = logging.getLogger(__name__)


class Config(BaseModel):
    """Folio configuration."""

    model_config = ConfigDict(
        extra="allow",
        str_strip_whitespace=True,
    )

    auto_save_delay_ms: int = Field(default=1000, ge=0)
    auto_rename_delay_ms: int = Field(default=1500, ge=0)
    auto_rename_enabled: bool = True
    session_snapshot_interval_s: float = Field(default=2.0, gt=0)
    trash_dir_name: str = ".trash"
    data_dir: Optional[Path] = None
    atomic_moves: bool = True

    @property
    def auto_save_delay(self) -> float:
        return self.auto_save_delay_ms / 1000

    @property
    def auto_rename_delay(self) -> float:
        return self.auto_rename_delay_ms / 1000

    def resolved_data_dir(self) -> Path:
        """Directory holding sessions, recents and preferences."""
        return self.data_dir if self.data_dir else get_xdg_data_path()


def get_config_path() -> Path:
    return get_xdg_config_path("config.json")


def load_config(path: Optional[Path] = None) -> Config:
    """Load Folio configuration from JSON file.

    Args:
        path: Path to config.json file. If None, uses default path

    Returns:
        Config object with loaded settings. Returns default config if file doesn't exist
        or cannot be parsed.
    """
    if path is None:
        path = get_config_path()

    if not path.exists():
        return Config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if data.get("data_dir"):
            data["data_dir"] = Path(data["data_dir"])

        return Config.model_validate(data)

    except json.JSONDecodeError as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return Config()
    except Exception as e:
        logger.warning("Failed to load config from %s: %s", path, e)
        return Config()


def save_config(config: Config, path: Optional[Path] = None) -> None:
    """Save Folio configuration to JSON file.

    Args:
        config: Config object to save
        path: Path to config.json file. If None, uses default path

    Raises:
        IOError: If file cannot be written
    """
    if path is None:
        path = get_config_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    config_data = config.model_dump(exclude_none=True, mode="json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_data, f, indent=2)


def set_config_value(key: str, value: Any, path: Optional[Path] = None) -> Config:
    """Set a single configuration value and persist it.

    Args:
        key: Field name (e.g., "auto_save_delay_ms")
        value: New value; validated against the field type
        path: Path to config.json file. If None, uses default path

    Returns:
        Updated config

    Raises:
        KeyError: If key is not a known configuration field
        pydantic.ValidationError: If value is invalid for the field
    """
    if key not in Config.model_fields:
        raise KeyError(f"Unknown configuration key: {key}")

    config = load_config(path)
    data = config.model_dump()
    data[key] = value
    updated = Config.model_validate(data)
    save_config(updated, path)
    return updated
