# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core data models shared across the gocheck package."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import AggregateFailure
from .severity import Severity


class ToolKind(str, Enum):
    """Analysis tools run on save, declared in merge order."""

    BUILD = "build"
    VET = "vet"
    LINT = "lint"

    @property
    def rank(self) -> int:
        """Return the position of the tool within the merge order."""
        return _TOOL_ORDER.index(self)


_TOOL_ORDER: tuple[ToolKind, ...] = tuple(ToolKind)


class LintFlavor(str, Enum):
    """Lint tool selection derived from the ``lint_on_save`` setting."""

    NONE = "none"
    GOLINT = "golint"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: bool | str | LintFlavor | None) -> LintFlavor:
        """Return the flavour described by a boolean or textual setting.

        Args:
            value: ``True``/``False`` toggles, a flavour name or a flavour.

        Returns:
            LintFlavor: ``GOLINT`` for ``True``, ``NONE`` for ``False``/``None``.

        Raises:
            ValueError: If ``value`` names no known flavour.
        """

        if isinstance(value, LintFlavor):
            return value
        if value is None or value is False:
            return cls.NONE
        if value is True:
            return cls.GOLINT
        return cls(str(value).strip().lower())


class CheckRequest(BaseModel):
    """Immutable description of one save-triggered check run."""

    model_config = ConfigDict(frozen=True)

    target_file: Path
    run_build: bool = True
    lint_flavor: LintFlavor = LintFlavor.GOLINT
    run_vet: bool = True

    @property
    def working_dir(self) -> Path:
        """Return the directory enclosing the target file."""
        return self.target_file.parent


class ToolInvocation(BaseModel):
    """Fully resolved command for a single tool."""

    model_config = ConfigDict(frozen=True)

    tool_kind: ToolKind
    command: str
    args: tuple[str, ...] = Field(default_factory=tuple)
    working_dir: Path

    def argv(self) -> list[str]:
        """Return the command followed by its arguments."""
        return [self.command, *self.args]


class InvocationErrorKind(str, Enum):
    """Reasons a tool produced no usable output."""

    NOT_FOUND = "not-found"
    TIMEOUT = "timeout"
    SPAWN_FAILED = "spawn-failed"


class InvocationError(BaseModel):
    """Describe why a tool could not be run to completion."""

    model_config = ConfigDict(frozen=True)

    kind: InvocationErrorKind
    detail: str = ""

    def describe(self) -> str:
        """Return a short human-readable reason."""
        return f"{self.kind.value}: {self.detail}" if self.detail else self.kind.value


class RawToolResult(BaseModel):
    """Captured output of a single tool run."""

    model_config = ConfigDict(frozen=True)

    tool_kind: ToolKind
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    invocation_error: InvocationError | None = None

    @property
    def ran(self) -> bool:
        """Return ``True`` when the tool ran, whatever its exit code."""
        return self.invocation_error is None


class Finding(BaseModel):
    """Tool-reported problem located by file and 1-based line."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int = Field(ge=1)
    severity_token: str
    message: str

    def dedupe_key(self) -> tuple[str, int, str, str]:
        """Return the identity used to collapse duplicate findings."""
        return (self.file, self.line, self.severity_token, self.message)


class MappedDiagnostic(BaseModel):
    """Finding positioned on the live document, ready for publishing."""

    model_config = ConfigDict(frozen=True)

    file: str
    line_index: int = Field(ge=0)
    start_column: int = Field(ge=0)
    end_column: int = Field(ge=0)
    severity: Severity
    message: str

    @model_validator(mode="after")
    def _end_not_before_start(self) -> MappedDiagnostic:
        """Reject ranges whose end precedes their start."""
        if self.end_column < self.start_column:
            raise ValueError("end_column must not precede start_column")
        return self


DiagnosticSet = tuple[MappedDiagnostic, ...]


class ToolSuccess(BaseModel):
    """Tool ran and its output was parsed, possibly into zero findings."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    tool_kind: ToolKind
    findings: tuple[Finding, ...] = Field(default_factory=tuple)


class ToolFailure(BaseModel):
    """Tool could not be invoked or did not finish in time."""

    model_config = ConfigDict(frozen=True)

    status: Literal["failure"] = "failure"
    tool_kind: ToolKind
    error: InvocationError


ToolOutcome = ToolSuccess | ToolFailure


class CheckResult(BaseModel):
    """Folded result of one check run.

    A run succeeds when at least one enabled tool produced output; failures of
    the remaining tools travel alongside the findings as secondary warnings.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    findings: tuple[Finding, ...] = Field(default_factory=tuple)
    failures: tuple[ToolFailure, ...] = Field(default_factory=tuple)
    error: AggregateFailure | None = None

    @property
    def ok(self) -> bool:
        """Return ``True`` when the run produced usable output."""
        return self.error is None

    def unwrap(self) -> tuple[Finding, ...]:
        """Return the findings or raise the aggregate failure."""
        if self.error is not None:
            raise self.error
        return self.findings


__all__ = [
    "CheckRequest",
    "CheckResult",
    "DiagnosticSet",
    "Finding",
    "InvocationError",
    "InvocationErrorKind",
    "LintFlavor",
    "MappedDiagnostic",
    "RawToolResult",
    "ToolFailure",
    "ToolInvocation",
    "ToolKind",
    "ToolOutcome",
    "ToolSuccess",
]
