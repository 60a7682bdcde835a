"""Configuration helpers: YAML config files and environment driven settings."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# How many context lines a single expansion reveals.
DEFAULT_DIFF_EXPANSION_STEP = 20
# Hard limit on the raw diff output we are willing to decode.
MAX_DIFF_BUFFER_SIZE = 70_000_000
# Diffs above this size can be shown but are not rendered by default.
MAX_REASONABLE_DIFF_SIZE = MAX_DIFF_BUFFER_SIZE // 16
MAX_CHARACTERS_PER_LINE = 5000

DEFAULTS: dict[str, Any] = {
    "expansion_step": DEFAULT_DIFF_EXPANSION_STEP,
    "limits": {
        "max_diff_buffer_size": MAX_DIFF_BUFFER_SIZE,
        "max_reasonable_diff_size": MAX_REASONABLE_DIFF_SIZE,
        "max_characters_per_line": MAX_CHARACTERS_PER_LINE,
    },
    "log_level": "INFO",
}


def _merge_dict(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: str | None, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    config = copy.deepcopy(DEFAULTS)
    if path:
        with Path(path).open("r", encoding="utf-8") as fh:
            file_cfg = yaml.safe_load(fh) or {}
        if not isinstance(file_cfg, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        config = _merge_dict(config, file_cfg)
    if overrides:
        config = _merge_dict(config, overrides)
    return config


class HunkwiseSettings(BaseSettings):
    """Environment driven settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    expansion_step: int = Field(default=DEFAULT_DIFF_EXPANSION_STEP, alias="HUNKWISE_EXPANSION_STEP", gt=0)
    max_characters_per_line: int = Field(default=MAX_CHARACTERS_PER_LINE, alias="HUNKWISE_MAX_CHARACTERS_PER_LINE")
    max_diff_buffer_size: int = Field(default=MAX_DIFF_BUFFER_SIZE, alias="HUNKWISE_MAX_DIFF_BUFFER_SIZE")
    max_reasonable_diff_size: int = Field(default=MAX_REASONABLE_DIFF_SIZE, alias="HUNKWISE_MAX_REASONABLE_DIFF_SIZE")
    log_level: str = Field(default="INFO", alias="HUNKWISE_LOG_LEVEL")

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> HunkwiseSettings:
        """Build settings from a :func:`load_config` mapping.

        Variables set in the environment take precedence over the file.
        """

        limits = config.get("limits", {})
        values: dict[str, Any] = {
            "expansion_step": config.get("expansion_step", DEFAULT_DIFF_EXPANSION_STEP),
            "max_characters_per_line": limits.get("max_characters_per_line", MAX_CHARACTERS_PER_LINE),
            "max_diff_buffer_size": limits.get("max_diff_buffer_size", MAX_DIFF_BUFFER_SIZE),
            "max_reasonable_diff_size": limits.get("max_reasonable_diff_size", MAX_REASONABLE_DIFF_SIZE),
            "log_level": config.get("log_level", "INFO"),
        }
        env = cls()
        for name in env.model_fields_set:
            values[name] = getattr(env, name)
        return cls(**{cls.model_fields[name].alias or name: value for name, value in values.items()})


def load_settings() -> HunkwiseSettings:
    """Return settings initialised from environment."""

    return HunkwiseSettings()
