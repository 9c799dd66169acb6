"""
Engine settings.

Settings are read from a YAML file (``.sechecker.yaml`` in the working
directory unless a path is given) and then overridden by environment
variables:

    SECHECKER_OUTPUT     global output mode (quiet/short/long/verbose)
    SECHECKER_POLICY     policy fact file
    SECHECKER_FC         file_contexts file
    SECHECKER_PROFILE    module profile
    SECHECKER_LOG_LEVEL  logging level name
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sechecker.config.profile import check_output_mode
from sechecker.domain.exceptions import ConfigError
from sechecker.domain.models import OutputFormat
from sechecker.utils.logging import get_logger, setup_logging

logger = get_logger("config.settings")

DEFAULT_SETTINGS_FILE = ".sechecker.yaml"

ENV_OVERRIDES = {
    "SECHECKER_OUTPUT": "output",
    "SECHECKER_POLICY": "policy_path",
    "SECHECKER_FC": "fc_path",
    "SECHECKER_PROFILE": "profile_path",
    "SECHECKER_LOG_LEVEL": "log_level",
}


class EngineSettings(BaseModel):
    """Settings used to build and report on a library."""

    model_config = ConfigDict(frozen=True)

    output: str = Field(default="short", description="Global output mode")
    policy_path: Path | None = Field(default=None, description="Policy fact file")
    fc_path: Path | None = Field(default=None, description="file_contexts file")
    profile_path: Path | None = Field(default=None, description="Module profile")
    log_level: str = Field(default="INFO", description="Logging level name")

    @field_validator("output", mode="before")
    @classmethod
    def known_output(cls, value: Any) -> Any:
        return check_output_mode(value)

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def output_format(self) -> OutputFormat:
        return OutputFormat.parse(self.output)

    def configure_logging(self) -> logging.Logger:
        """Set up package logging at the configured level."""
        return setup_logging(self.log_level)


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineSettings:
    """
    Load settings with environment overrides.

    Args:
        path: Settings file; defaults to ``.sechecker.yaml`` when present.
        environ: Environment to read overrides from (defaults to os.environ).

    Raises:
        ConfigError: If the settings file is unreadable or invalid.
    """
    environ = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    if path is None:
        default = Path.cwd() / DEFAULT_SETTINGS_FILE
        path = default if default.exists() else None

    if path is not None:
        path = Path(path)
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except OSError as e:
            raise ConfigError(f"Error reading settings {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in settings {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Settings file must contain a mapping: {path}")
        data.update(loaded)
        logger.debug(f"Loaded settings from {path}")

    for variable, key in ENV_OVERRIDES.items():
        if environ.get(variable):
            data[key] = environ[variable]

    try:
        return EngineSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
