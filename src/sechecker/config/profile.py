"""
Module profiles.

A profile is a declarative document naming the modules to run and
overriding their output format, options, requirements and dependencies:

    sechecker:
      version: "1.1"
      output: short
      modules:
        - name: find_domains
          output: long
          options:
            - {name: domain_attribute, value: domain}
          requirements:
            - {name: policy_type, value: source}
          dependencies:
            - {name: module, value: find_assoc_types}
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sechecker.domain.exceptions import NotFoundError, ProfileError
from sechecker.domain.models import NameValue, OutputFormat
from sechecker.utils.logging import get_logger

if TYPE_CHECKING:
    from sechecker.engine.library import Library

logger = get_logger("config.profile")

ROOT_TAG = "sechecker"
OUTPUT_MODES = ("quiet", "short", "long", "verbose")


def check_output_mode(value: str | None) -> str | None:
    if value is None:
        return None
    mode = str(value).strip().lower()
    if mode not in OUTPUT_MODES:
        raise ValueError(f"output must be one of {', '.join(OUTPUT_MODES)}, got {value!r}")
    return mode


class ModuleProfile(BaseModel):
    """Profile entry for one module."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Module name")
    output: str | None = Field(default=None, description="Output mode override")
    options: list[NameValue] = Field(default_factory=list)
    requirements: list[NameValue] = Field(default_factory=list)
    dependencies: list[NameValue] = Field(default_factory=list)

    @field_validator("output", mode="before")
    @classmethod
    def check_output(cls, value: Any) -> str | None:
        return check_output_mode(value)

    @property
    def output_format(self) -> OutputFormat | None:
        return OutputFormat.parse(self.output) if self.output else None


class Profile(BaseModel):
    """A complete module profile."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(default="1", description="Profile schema version")
    output: str | None = Field(default=None, description="Global output mode")
    modules: list[ModuleProfile] = Field(default_factory=list)

    @field_validator("output", mode="before")
    @classmethod
    def check_output(cls, value: Any) -> str | None:
        return check_output_mode(value)

    @field_validator("version", mode="before")
    @classmethod
    def version_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) else value

    @field_validator("modules")
    @classmethod
    def unique_names(cls, modules: list[ModuleProfile]) -> list[ModuleProfile]:
        seen: set[str] = set()
        for module in modules:
            if module.name in seen:
                raise ValueError(f"module '{module.name}' listed twice")
            seen.add(module.name)
        return modules

    @property
    def output_format(self) -> OutputFormat | None:
        return OutputFormat.parse(self.output) if self.output else None

    @property
    def module_names(self) -> list[str]:
        return [module.name for module in self.modules]


def load_profile(path: Path | str) -> Profile:
    """
    Load a profile from a YAML file.

    Raises:
        ProfileError: If the profile cannot be read or parsed.
    """
    path = Path(path)

    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ProfileError(f"Profile not found: {path}", profile_path=str(path))
    except OSError as e:
        raise ProfileError(f"Error reading profile: {e}", profile_path=str(path)) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ProfileError(f"Invalid YAML in profile: {e}", profile_path=str(path)) from e

    return parse_profile(data, profile_path=str(path))


def parse_profile(data: Any, profile_path: str | None = None) -> Profile:
    """
    Build a Profile from parsed data.

    Raises:
        ProfileError: If the root tag is missing or the schema is invalid.
    """
    if not isinstance(data, dict) or ROOT_TAG not in data:
        raise ProfileError(f"Profile must have a '{ROOT_TAG}' root", profile_path=profile_path)

    body = data[ROOT_TAG] or {}
    if not isinstance(body, dict):
        raise ProfileError(f"'{ROOT_TAG}' must be a mapping", profile_path=profile_path)

    try:
        return Profile(**body)
    except ValidationError as e:
        raise ProfileError(f"Invalid profile schema: {e}", profile_path=profile_path) from e


def apply_profile(library: Library, profile: Profile, select_listed: bool = True) -> None:
    """
    Apply a profile to the modules registered in a library.

    Options replace the module's options of the same name; requirements and
    dependencies are added unless already declared. With ``select_listed``
    exactly the listed modules are selected.

    Raises:
        NotFoundError: If the profile names an unregistered module. The
            library is left unchanged in that case.
    """
    for entry in profile.modules:
        if entry.name not in library.registry:
            raise NotFoundError(entry.name)

    if profile.output_format is not None:
        library.set_output_format(profile.output_format)

    for entry in profile.modules:
        module = library.get_module(entry.name)

        if entry.output_format is not None:
            module.output_format = entry.output_format

        overridden = {option.name for option in entry.options}
        module.options = [o for o in module.options if o.name not in overridden] + list(entry.options)

        for requirement in entry.requirements:
            if requirement not in module.requirements:
                module.requirements.append(requirement)
        for dependency in entry.dependencies:
            if dependency not in module.dependencies:
                module.dependencies.append(dependency)

    if select_listed:
        library.select_only(profile.module_names)

    logger.info(f"Applied profile with {len(profile.modules)} module(s)")
