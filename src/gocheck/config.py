# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models and loaders for save-triggered checks."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError
from .models import CheckRequest, LintFlavor

CONFIG_SECTION: Final[str] = "gocheck"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
ENV_PREFIX: Final[str] = "GOCHECK_"
DEFAULT_TOOL_TIMEOUT: Final[float] = 30.0

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})
_BOOL_ENV_KEYS: Final[tuple[str, ...]] = ("build_on_save", "vet_on_save")
_STR_ENV_KEYS: Final[tuple[str, ...]] = ("lint_tool", "go_binary")


class CheckSettings(BaseModel):
    """User-facing switches controlling which tools run on save."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    build_on_save: bool = True
    lint_on_save: bool | LintFlavor = True
    vet_on_save: bool = True
    lint_tool: str = "golint"
    go_binary: str = "go"
    build_flags: tuple[str, ...] = Field(default_factory=tuple)
    vet_flags: tuple[str, ...] = Field(default_factory=tuple)
    lint_flags: tuple[str, ...] = Field(default_factory=tuple)
    tool_timeout: float = Field(default=DEFAULT_TOOL_TIMEOUT, gt=0)

    @field_validator("lint_tool", "go_binary")
    @classmethod
    def _require_command(cls, value: str) -> str:
        """Reject blank executable names."""
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("executable name must not be empty")
        return trimmed

    @property
    def lint_flavor(self) -> LintFlavor:
        """Return the lint flavour described by ``lint_on_save``."""
        return LintFlavor.coerce(self.lint_on_save)

    def request_for(self, target_file: Path) -> CheckRequest:
        """Build the check request for a save of ``target_file``.

        Args:
            target_file: Path of the saved document.

        Returns:
            CheckRequest: Request snapshotting the current switches.
        """

        return CheckRequest(
            target_file=target_file,
            run_build=self.build_on_save,
            lint_flavor=self.lint_flavor,
            run_vet=self.vet_on_save,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation of the settings."""
        return self.model_dump(mode="json")


SettingsProvider = Callable[[], CheckSettings]


def build_settings(payload: Mapping[str, Any]) -> CheckSettings:
    """Validate ``payload`` into :class:`CheckSettings`.

    Raises:
        ConfigError: When the payload does not describe valid settings.
    """

    try:
        return CheckSettings.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(f"Invalid gocheck configuration: {exc}") from exc


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration at {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed TOML in {path}: {exc}") from exc
    if path.name == "pyproject.toml":
        tool_section = data.get(PYPROJECT_TOOL_KEY, {})
        section = tool_section.get(CONFIG_SECTION, {}) if isinstance(tool_section, Mapping) else {}
    else:
        section = data.get(CONFIG_SECTION, data)
    if not isinstance(section, Mapping):
        raise ConfigError(f"Configuration section [{CONFIG_SECTION}] in {path} must be a table")
    return dict(section)


def _parse_bool(key: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{ENV_PREFIX}{key.upper()} must be a boolean, got {raw!r}")


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key in _BOOL_ENV_KEYS:
        raw = env.get(f"{ENV_PREFIX}{key.upper()}")
        if raw is not None:
            overrides[key] = _parse_bool(key, raw)
    for key in _STR_ENV_KEYS:
        raw = env.get(f"{ENV_PREFIX}{key.upper()}")
        if raw is not None:
            overrides[key] = raw
    lint_raw = env.get(f"{ENV_PREFIX}LINT_ON_SAVE")
    if lint_raw is not None:
        lowered = lint_raw.strip().lower()
        if lowered in _TRUE_VALUES or lowered in _FALSE_VALUES:
            overrides["lint_on_save"] = _parse_bool("lint_on_save", lint_raw)
        else:
            overrides["lint_on_save"] = lowered
    timeout_raw = env.get(f"{ENV_PREFIX}TOOL_TIMEOUT")
    if timeout_raw is not None:
        try:
            overrides["tool_timeout"] = float(timeout_raw)
        except ValueError as exc:
            raise ConfigError(f"{ENV_PREFIX}TOOL_TIMEOUT must be a number, got {timeout_raw!r}") from exc
    return overrides


def load_settings(path: Path | None = None, *, env: Mapping[str, str] | None = None) -> CheckSettings:
    """Load settings from defaults, an optional TOML file and the environment.

    Args:
        path: ``gocheck.toml`` style file (``[gocheck]`` table or top-level keys)
            or a ``pyproject.toml`` carrying ``[tool.gocheck]``.
        env: Environment mapping; defaults to :data:`os.environ`.

    Returns:
        CheckSettings: Validated settings with later sources taking precedence.

    Raises:
        ConfigError: When any source is unreadable or invalid.
    """

    payload: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Configuration file {path} does not exist")
        payload.update(_read_toml(path))
    payload.update(_env_overrides(os.environ if env is None else env))
    return build_settings(payload)


__all__ = [
    "CONFIG_SECTION",
    "CheckSettings",
    "SettingsProvider",
    "build_settings",
    "load_settings",
]
