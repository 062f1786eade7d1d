# config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

# Config models map YAML sections to typed structures. Every field has a
# default so a partial file can be back-filled.

DEFAULT_WALLPAPERS_FOLDER = "/usr/share/backgrounds"
DEFAULT_INTERVAL_MINUTES = 10
CONFIG_ENV_VAR = "DEBKIT_CONFIG"


class WallpapersConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    folder: str = DEFAULT_WALLPAPERS_FOLDER


class VarietyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    interval_minutes: int = Field(default=DEFAULT_INTERVAL_MINUTES, gt=0)


class FoundationConfig(BaseModel):
    # Feature names that make up the "foundation" profile.
    model_config = ConfigDict(extra="forbid")
    install: list[str] = Field(default_factory=list)


class DebkitConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    wallpapers: WallpapersConfig = Field(default_factory=WallpapersConfig)
    variety: VarietyConfig = Field(default_factory=VarietyConfig)
    foundation: FoundationConfig = Field(default_factory=FoundationConfig)


def home_dir() -> Path:
    home = os.environ.get("HOME")
    if not home:
        raise ConfigError("HOME environment variable is not set")
    return Path(home)


def config_path_for_home(home: Path) -> Path:
    return home / ".config" / "debkit" / "config.yaml"


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return config_path_for_home(home_dir())


def _missing_keys(raw: dict[str, Any]) -> list[str]:
    """Dotted names of known keys absent from the raw mapping."""
    missing: list[str] = []
    for section, model in DebkitConfig.model_fields.items():
        block = raw.get(section)
        if not isinstance(block, dict):
            missing.append(section)
            continue
        for key in model.annotation.model_fields:
            if key not in block:
                missing.append(f"{section}.{key}")
    return missing


def serialize_config(config: DebkitConfig) -> str:
    return yaml.safe_dump(config.model_dump(), sort_keys=False, default_flow_style=False)


def parse_config(text: str, path: Path | None = None) -> tuple[DebkitConfig, list[str]]:
    """
    Parse YAML text into a validated config.

    Returns the config plus the dotted names of keys that were filled in from
    defaults.
    """
    where = str(path) if path else None
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}", where) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping", where)

    # An empty section ("foundation:") loads as None; treat it as {}.
    cleaned = {k: ({} if v is None else v) for k, v in raw.items()}
    try:
        config = DebkitConfig.model_validate(cleaned)
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}", where) from e
    return config, _missing_keys(cleaned)


def load_or_init_for_home(home: Path) -> DebkitConfig:
    return load_or_init(config_path_for_home(home))


def load_or_init(path: Path | None = None) -> DebkitConfig:
    """
    Load the config, creating it with defaults when absent.

    Keys missing from an existing file are back-filled and the file is
    rewritten; values already present are kept.
    """
    path = path or config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            config = DebkitConfig()
            path.write_text(serialize_config(config), encoding="utf-8")
            return config

        config, missing = parse_config(path.read_text(encoding="utf-8"), path)
        if missing:
            path.write_text(serialize_config(config), encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot access config: {e}", str(path)) from e
    return config
